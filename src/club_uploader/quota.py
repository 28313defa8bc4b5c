"""Daily YouTube Data API quota bookkeeping on the uploading machine.

Each ``videos.insert`` costs 1600 units out of a 10000 unit daily allowance.
Usage is kept in the local state store under ``youtube_quota_usage`` and a new
record is started on the first read after the calendar date changes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Callable

from .local_state import LocalStateStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "youtube_quota_usage"
DAILY_LIMIT = 10000
UPLOAD_COST = 1600


@dataclass
class QuotaUsage:
    date: str
    uploads: int = 0
    total_units: int = 0


@dataclass(frozen=True)
class RemainingQuota:
    remaining: int
    max_uploads: int
    used_today: int


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class QuotaTracker:
    def __init__(
        self,
        store: LocalStateStore,
        *,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self._store = store
        self._today = today
        self._lock = threading.Lock()

    def _read(self) -> QuotaUsage:
        today = self._today().isoformat()
        stored = self._store.get(STORAGE_KEY)
        if stored and stored.get("date") == today:
            return QuotaUsage(
                date=today,
                uploads=int(stored.get("uploads", 0)),
                total_units=int(stored.get("total_units", 0)),
            )
        usage = QuotaUsage(date=today)
        self._store.set(STORAGE_KEY, asdict(usage))
        return usage

    def today_usage(self) -> QuotaUsage:
        with self._lock:
            return self._read()

    def can_upload(self) -> bool:
        return self.today_usage().total_units + UPLOAD_COST <= DAILY_LIMIT

    def record_upload(self) -> QuotaUsage:
        with self._lock:
            usage = self._read()
            usage.uploads += 1
            usage.total_units += UPLOAD_COST
            self._store.set(STORAGE_KEY, asdict(usage))
        remaining = DAILY_LIMIT - usage.total_units
        logger.info(
            "YouTube quota usage: uploads=%d units=%d remaining=%d",
            usage.uploads,
            usage.total_units,
            remaining,
        )
        return usage

    def remaining(self) -> RemainingQuota:
        usage = self.today_usage()
        remaining = DAILY_LIMIT - usage.total_units
        return RemainingQuota(
            remaining=remaining,
            max_uploads=max(remaining, 0) // UPLOAD_COST,
            used_today=usage.uploads,
        )
