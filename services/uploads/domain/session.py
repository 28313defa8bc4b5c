from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Optional

from .video_id import NoVideoId, PlaceholderVideoId, RealVideoId, VideoId


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


RESUMABLE_STATUSES = frozenset(
    {UploadStatus.PENDING, UploadStatus.UPLOADING, UploadStatus.PROCESSING}
)
TERMINAL_STATUSES = frozenset(
    {UploadStatus.COMPLETED, UploadStatus.FAILED, UploadStatus.EXPIRED}
)

_ACTIVE_TARGETS = frozenset(
    {
        UploadStatus.UPLOADING,
        UploadStatus.PROCESSING,
        UploadStatus.COMPLETED,
        UploadStatus.FAILED,
        UploadStatus.EXPIRED,
    }
)

ALLOWED_TRANSITIONS: Mapping[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.PENDING: _ACTIVE_TARGETS,
    UploadStatus.UPLOADING: _ACTIVE_TARGETS,
    UploadStatus.PROCESSING: _ACTIVE_TARGETS,
    UploadStatus.COMPLETED: frozenset(),
    # a late resume still records expiry against a failed session
    UploadStatus.FAILED: frozenset({UploadStatus.EXPIRED}),
    UploadStatus.EXPIRED: frozenset(),
}


class InvalidTransitionError(ValueError):
    def __init__(self, current: UploadStatus, target: UploadStatus) -> None:
        super().__init__(f"Cannot move upload session from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: UploadStatus, target: UploadStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class VideoMetadata:
    title: str
    description: str = ""
    tags: tuple[str, ...] = ()
    category_id: str = "17"
    privacy: str = "unlisted"
    game_result_id: Optional[str] = None
    match_type: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "VideoMetadata":
        game_result_id = data.get("gameResultId")
        match_type = data.get("matchType")
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            tags=tuple(str(tag) for tag in (data.get("tags") or [])),
            category_id=str(data.get("categoryId") or "17"),
            # every upload is unlisted regardless of what the client asked for
            privacy="unlisted",
            game_result_id=str(game_result_id) if game_result_id not in (None, "") else None,
            match_type=str(match_type) if match_type else None,
        )

    def to_mapping(self) -> dict[str, object]:
        data: dict[str, object] = {
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "categoryId": self.category_id,
            "privacy": self.privacy,
        }
        if self.game_result_id is not None:
            data["gameResultId"] = self.game_result_id
        if self.match_type is not None:
            data["matchType"] = self.match_type
        return data


@dataclass(frozen=True)
class UploadSession:
    session_id: str
    user_id: str
    file_name: str
    file_size: int
    youtube_session_id: str
    youtube_upload_url: str
    uploaded_bytes: int
    status: UploadStatus
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    video_id: VideoId = field(default_factory=NoVideoId)
    metadata: Mapping[str, object] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def progress_percentage(self) -> int:
        return progress_percentage(self.uploaded_bytes, self.file_size)

    @property
    def title(self) -> str | None:
        title = self.metadata.get("title") if self.metadata else None
        return title if isinstance(title, str) and title.strip() else None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def transition(
        self,
        target: UploadStatus,
        *,
        now: datetime,
        error_message: str | None = None,
    ) -> "UploadSession":
        if target is not self.status and not can_transition(self.status, target):
            raise InvalidTransitionError(self.status, target)
        return replace(
            self,
            status=target,
            updated_at=now,
            error_message=error_message if error_message is not None else self.error_message,
        )

    def with_progress(self, uploaded_bytes: int, *, now: datetime) -> "UploadSession":
        acknowledged = min(max(self.uploaded_bytes, uploaded_bytes), self.file_size)
        target = (
            UploadStatus.PROCESSING
            if acknowledged >= self.file_size
            else UploadStatus.UPLOADING
        )
        return replace(
            self.transition(target, now=now), uploaded_bytes=acknowledged
        )

    def completed_with(self, video_id: RealVideoId, *, now: datetime) -> "UploadSession":
        return replace(
            self.transition(UploadStatus.COMPLETED, now=now),
            video_id=video_id,
            uploaded_bytes=self.file_size,
        )

    def awaiting_reconciliation(
        self, placeholder: PlaceholderVideoId, *, now: datetime
    ) -> "UploadSession":
        # bytes are all on the platform, only the identifier is unknown
        return replace(
            self.transition(UploadStatus.PROCESSING, now=now),
            video_id=placeholder,
            uploaded_bytes=self.file_size,
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def effective_status(session: UploadSession, now: datetime) -> UploadStatus:
    """Status as presented to callers: expiry overrides anything but completion."""
    if session.status is UploadStatus.COMPLETED:
        return UploadStatus.COMPLETED
    if session.is_expired(now):
        return UploadStatus.EXPIRED
    return session.status


def progress_percentage(uploaded_bytes: int, file_size: int) -> int:
    if file_size <= 0:
        return 0
    # half-up, matching Math.round on the browser side
    return int(uploaded_bytes * 100 / file_size + 0.5)
