from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from .dto import ListPendingSessionsQuery
from .interfaces import PendingSessionsCache, UploadSessionRepository
from ..domain.session import (
    RESUMABLE_STATUSES,
    UploadSession,
    UploadStatus,
    effective_status,
    utcnow,
)

logger = logging.getLogger(__name__)


def isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class ListPendingSessionsUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        cache: PendingSessionsCache,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._clock = clock

    def execute(self, query: ListPendingSessionsQuery) -> Mapping[str, Any]:
        cache_key = f"pending_sessions_{query.user_id}_{int(query.include_expired)}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        now = self._clock()
        sessions = self._repository.list_for_user(
            query.user_id,
            statuses=RESUMABLE_STATUSES,
            expires_after=None if query.include_expired else now,
        )
        sessions.sort(key=lambda session: session.created_at, reverse=True)
        formatted = [format_pending_session(session, now) for session in sessions]

        payload = {
            "sessions": formatted,
            "stats": {
                "total": len(formatted),
                "pending": _count(formatted, UploadStatus.PENDING),
                "uploading": _count(formatted, UploadStatus.UPLOADING),
                "processing": _count(formatted, UploadStatus.PROCESSING),
                "expired": sum(1 for item in formatted if item["isExpired"]),
                "resumable": sum(1 for item in formatted if item["canResume"]),
            },
            "timestamp": isoformat(now),
        }
        self._cache.set(cache_key, payload)
        return payload


def format_pending_session(session: UploadSession, now: datetime) -> dict[str, Any]:
    is_expired = session.is_expired(now)
    status = effective_status(session, now)
    return {
        "sessionId": session.session_id,
        "fileName": session.file_name,
        "fileSize": session.file_size,
        "uploadedBytes": session.uploaded_bytes,
        "progress": session.progress_percentage,
        "status": status.value,
        "youtubeUploadUrl": session.youtube_upload_url,
        "metadata": dict(session.metadata),
        "errorMessage": session.error_message,
        "expiresAt": isoformat(session.expires_at),
        "createdAt": isoformat(session.created_at),
        "updatedAt": isoformat(session.updated_at),
        "isExpired": is_expired,
        "canResume": not is_expired
        and session.status in (UploadStatus.UPLOADING, UploadStatus.PENDING),
    }


def _count(formatted: list[dict[str, Any]], status: UploadStatus) -> int:
    return sum(1 for item in formatted if item["status"] == status.value)
