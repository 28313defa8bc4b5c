from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from ..domain.session import UploadSession, UploadStatus


@dataclass(frozen=True)
class InitiateUploadCommand:
    user_id: str
    file_name: str | None
    file_size: int | None
    metadata: Mapping[str, object] | None


@dataclass(frozen=True)
class FinalizeUploadCommand:
    user_id: str
    session_id: str | None
    youtube_video_id: str | None


@dataclass(frozen=True)
class ResumeUploadCommand:
    user_id: str
    session_id: str


@dataclass(frozen=True)
class ReportProgressCommand:
    user_id: str
    session_id: str | None
    uploaded_bytes: int | None


@dataclass(frozen=True)
class ListPendingSessionsQuery:
    user_id: str
    include_expired: bool = False


@dataclass(frozen=True)
class SessionStatusQuery:
    user_id: str
    session_id: str


@dataclass(frozen=True)
class ReconcileVideoIdCommand:
    user_id: str
    session_id: str | None


@dataclass(frozen=True)
class RelayChunkCommand:
    user_id: str
    upload_url: str | None
    session_id: str | None
    content_range: str | None
    content_type: str
    body: bytes


@dataclass(frozen=True)
class InitiatedUpload:
    session_id: str
    upload_url: str
    expires_at: datetime


@dataclass(frozen=True)
class FinalizedUpload:
    session_id: str
    video_id: str
    status: UploadStatus


@dataclass(frozen=True)
class ResumeOutcome:
    session: UploadSession
    already_completed: bool = False


@dataclass(frozen=True)
class ProgressReport:
    progress: int
    uploaded_bytes: int
    total_bytes: int
    status: UploadStatus

