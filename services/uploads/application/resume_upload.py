from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .dto import ResumeOutcome, ResumeUploadCommand
from .errors import (
    SessionExpiredError,
    SessionFailedError,
    SessionNotFoundError,
    SessionNotResumableError,
)
from .interfaces import UploadSessionRepository
from ..domain.session import RESUMABLE_STATUSES, UploadStatus, effective_status, utcnow

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Session expired - please start a new upload"


class ResumeUploadUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def execute(self, command: ResumeUploadCommand) -> ResumeOutcome:
        session = self._repository.get_for_user(command.session_id, command.user_id)
        if session is None:
            raise SessionNotFoundError()

        now = self._clock()
        status = effective_status(session, now)

        if status is UploadStatus.COMPLETED:
            return ResumeOutcome(session=session, already_completed=True)

        if status is UploadStatus.EXPIRED:
            self._repository.save(
                session.transition(
                    UploadStatus.EXPIRED, now=now, error_message=EXPIRED_MESSAGE
                )
            )
            logger.info("Upload session %s expired at %s", session.session_id, session.expires_at)
            raise SessionExpiredError(
                "Session expired",
                extra={
                    "message": "Please start a new upload session",
                    "canCreateNew": True,
                },
            )

        if status is UploadStatus.FAILED:
            raise SessionFailedError(
                "Upload failed previously",
                extra={"errorMessage": session.error_message, "canRetry": True},
            )

        if status not in RESUMABLE_STATUSES:
            raise SessionNotResumableError("Session cannot be resumed from current state")

        resumed = self._repository.save(session.transition(UploadStatus.UPLOADING, now=now))
        logger.info(
            "Resuming upload session %s at %s/%s bytes",
            resumed.session_id,
            resumed.uploaded_bytes,
            resumed.file_size,
        )
        return ResumeOutcome(session=resumed)
