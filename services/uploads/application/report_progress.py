from __future__ import annotations

from datetime import datetime
from typing import Callable

from .dto import ProgressReport, ReportProgressCommand
from .errors import (
    InvalidSessionStateError,
    MissingParametersError,
    SessionExpiredError,
    SessionNotFoundError,
)
from .interfaces import UploadSessionRepository
from ..domain.session import InvalidTransitionError, utcnow


class ReportProgressUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def execute(self, command: ReportProgressCommand) -> ProgressReport:
        if (
            not command.session_id
            or not isinstance(command.uploaded_bytes, int)
            or isinstance(command.uploaded_bytes, bool)
        ):
            raise MissingParametersError(
                "Missing required parameters: sessionId, uploadedBytes"
            )

        session = self._repository.get_for_user(command.session_id, command.user_id)
        if session is None:
            raise SessionNotFoundError()

        now = self._clock()
        if session.is_expired(now):
            raise SessionExpiredError("Session expired")

        try:
            updated = session.with_progress(command.uploaded_bytes, now=now)
        except InvalidTransitionError as exc:
            raise InvalidSessionStateError(str(exc)) from exc
        self._repository.save(updated)

        return ProgressReport(
            progress=updated.progress_percentage,
            uploaded_bytes=updated.uploaded_bytes,
            total_bytes=updated.file_size,
            status=updated.status,
        )
