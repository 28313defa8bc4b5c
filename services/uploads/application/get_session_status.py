from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping

from .dto import SessionStatusQuery
from .errors import SessionNotFoundError
from .interfaces import UploadSessionRepository
from .list_pending_sessions import isoformat
from ..domain.session import effective_status, utcnow


class GetSessionStatusUseCase:
    """Read-only view of one session; never rewrites the stored status."""

    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def execute(self, query: SessionStatusQuery) -> Mapping[str, Any]:
        session = self._repository.get_for_user(query.session_id, query.user_id)
        if session is None:
            raise SessionNotFoundError()
        now = self._clock()
        return {
            "sessionId": session.session_id,
            "fileName": session.file_name,
            "fileSize": session.file_size,
            "uploadedBytes": session.uploaded_bytes,
            "progress": session.progress_percentage,
            "status": effective_status(session, now).value,
            "youtubeVideoId": session.video_id.stored or None,
            "youtubeUploadUrl": session.youtube_upload_url,
            "metadata": dict(session.metadata),
            "errorMessage": session.error_message,
            "expiresAt": isoformat(session.expires_at),
            "createdAt": isoformat(session.created_at),
            "updatedAt": isoformat(session.updated_at),
            "isExpired": session.is_expired(now),
        }
