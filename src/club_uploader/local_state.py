from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

logger = logging.getLogger(__name__)

UPLOAD_STATE_PREFIX = "upload_state_"
UPLOAD_STATE_MAX_AGE_MS = 24 * 60 * 60 * 1000

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


def epoch_ms() -> int:
    return int(time.time() * 1000)


class LocalStateStore:
    """Small key/value store persisted as one JSON file per key.

    Read and write failures are logged and treated as a missing entry so a
    broken state directory never aborts an upload.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid state key: {key!r}")
        return self._directory / f"{key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read local state %s: %s", key, exc)
            return None

    def set(self, key: str, value: Mapping[str, Any]) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(dict(value), fh)
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.warning("Failed to save local state %s: %s", key, exc)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Failed to clear local state %s: %s", key, exc)

    def keys(self, prefix: str = "") -> Iterator[str]:
        if not self._directory.is_dir():
            return iter(())
        return (
            path.stem
            for path in sorted(self._directory.glob(f"{prefix}*.json"))
        )


@dataclass(frozen=True)
class LocalUploadState:
    session_id: str
    file_name: str
    uploaded_bytes: int
    total_bytes: int
    upload_url: str
    last_update: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LocalUploadState":
        return cls(
            session_id=str(data["sessionId"]),
            file_name=str(data["fileName"]),
            uploaded_bytes=int(data["uploadedBytes"]),
            total_bytes=int(data["totalBytes"]),
            upload_url=str(data["uploadUrl"]),
            last_update=int(data["lastUpdate"]),
        )

    def to_mapping(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "sessionId": data["session_id"],
            "fileName": data["file_name"],
            "uploadedBytes": data["uploaded_bytes"],
            "totalBytes": data["total_bytes"],
            "uploadUrl": data["upload_url"],
            "lastUpdate": data["last_update"],
        }


class UploadStateRepository:
    """Mirror of in-flight uploads, keyed ``upload_state_<sessionId>``."""

    def __init__(
        self,
        store: LocalStateStore,
        *,
        clock_ms: Callable[[], int] = epoch_ms,
    ) -> None:
        self._store = store
        self._clock_ms = clock_ms

    @staticmethod
    def key(session_id: str) -> str:
        return f"{UPLOAD_STATE_PREFIX}{session_id}"

    def save(self, state: LocalUploadState) -> None:
        self._store.set(self.key(state.session_id), state.to_mapping())

    def load(self, session_id: str) -> LocalUploadState | None:
        raw = self._store.get(self.key(session_id))
        if raw is None:
            return None
        try:
            return LocalUploadState.from_mapping(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed upload state for %s", session_id)
            return None

    def clear(self, session_id: str) -> None:
        self._store.remove(self.key(session_id))

    def load_all(self) -> list[LocalUploadState]:
        """Return fresh states, evicting those idle for 24 hours or more."""
        now = self._clock_ms()
        states: list[LocalUploadState] = []
        for key in list(self._store.keys(UPLOAD_STATE_PREFIX)):
            session_id = key[len(UPLOAD_STATE_PREFIX):]
            state = self.load(session_id)
            if state is None:
                continue
            if now - state.last_update < UPLOAD_STATE_MAX_AGE_MS:
                states.append(state)
            else:
                self._store.remove(key)
        return states
