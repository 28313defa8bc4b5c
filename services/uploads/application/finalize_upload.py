from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Mapping

from .dto import FinalizeUploadCommand, FinalizedUpload
from .errors import (
    InvalidSessionStateError,
    MissingParametersError,
    SessionNotFoundError,
)
from .interfaces import GameMediaRepository, ReconciliationQueue, UploadSessionRepository
from ..domain.session import InvalidTransitionError, utcnow
from ..domain.video_id import PlaceholderVideoId, RealVideoId, parse_video_id

logger = logging.getLogger(__name__)


class FinalizeUploadUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        game_media: GameMediaRepository,
        reconciliation_queue: ReconciliationQueue | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._game_media = game_media
        self._reconciliation_queue = reconciliation_queue
        self._clock = clock

    def execute(self, command: FinalizeUploadCommand) -> FinalizedUpload:
        if not command.session_id or not command.youtube_video_id:
            raise MissingParametersError(
                "Missing required parameters: sessionId, youtubeVideoId"
            )

        session = self._repository.get_for_user(command.session_id, command.user_id)
        if session is None:
            raise SessionNotFoundError()

        video_id = parse_video_id(command.youtube_video_id)
        now = self._clock()
        try:
            if isinstance(video_id, RealVideoId):
                updated = session.completed_with(video_id, now=now)
            elif isinstance(video_id, PlaceholderVideoId):
                updated = session.awaiting_reconciliation(video_id, now=now)
            else:
                raise MissingParametersError(
                    "Missing required parameters: sessionId, youtubeVideoId"
                )
        except InvalidTransitionError as exc:
            raise InvalidSessionStateError(str(exc)) from exc

        self._repository.save(updated)

        if isinstance(video_id, RealVideoId):
            self._link_game_result(session.metadata, video_id.value)
        else:
            self._schedule_reconciliation(updated.session_id, updated.user_id)

        return FinalizedUpload(
            session_id=updated.session_id,
            video_id=video_id.stored,
            status=updated.status,
        )

    def _link_game_result(self, metadata: Mapping[str, object], video_id: str) -> None:
        # TODO: surface failed links to an operator once there is a place to report them
        raw_id = metadata.get("gameResultId") if isinstance(metadata, Mapping) else None
        if raw_id in (None, ""):
            return
        try:
            game_id = int(str(raw_id))
        except ValueError:
            logger.warning("Invalid gameResultId in metadata: %r", raw_id)
            return
        try:
            if not self._game_media.link_match_game(game_id, video_id):
                logger.warning("Match game %s not found; video %s left unlinked", game_id, video_id)
        except Exception:
            logger.exception("Game result linking failed for game %s", game_id)

    def _schedule_reconciliation(self, session_id: str, user_id: str) -> None:
        if self._reconciliation_queue is None:
            return
        try:
            job_id = self._reconciliation_queue.enqueue(
                session_id=session_id, user_id=user_id
            )
            logger.info("Queued video id reconciliation %s for session %s", job_id, session_id)
        except Exception:
            logger.exception("Could not queue reconciliation for session %s", session_id)
