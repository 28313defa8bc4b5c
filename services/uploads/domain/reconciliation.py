from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

SEARCH_WINDOW = timedelta(days=3)


@dataclass(frozen=True)
class PlatformUpload:
    video_id: str
    title: str
    published_at: datetime


def normalize_title(title: str) -> str:
    return title.strip().lower()


def within_window(
    upload: PlatformUpload, around: datetime, window: timedelta = SEARCH_WINDOW
) -> bool:
    return around - window <= upload.published_at <= around + window


def select_exact_title_match(
    uploads: Iterable[PlatformUpload],
    *,
    title: str,
    around: datetime,
    window: timedelta = SEARCH_WINDOW,
) -> Optional[PlatformUpload]:
    """First upload in the window whose trimmed, lower-cased title equals ``title``'s."""
    target = normalize_title(title)
    for upload in uploads:
        if not upload.video_id or not upload.title:
            continue
        if not within_window(upload, around, window):
            continue
        if normalize_title(upload.title) == target:
            return upload
    return None
