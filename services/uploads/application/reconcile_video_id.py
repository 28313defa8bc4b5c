"""Best-effort recovery of a real video id for sessions left with a placeholder.

The terminal chunk response is occasionally lost or unreadable even though the
platform accepted the video. The uploader then finalizes with a placeholder id
and this use case searches the channel's recent uploads for a video with the
same title, published within a few days of the session's creation.

Matching is exact after trimming and lower-casing; a renamed or duplicated
title produces a miss, never a guess.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .dto import ReconcileVideoIdCommand
from .errors import (
    CredentialsNotConfiguredError,
    InvalidSessionStateError,
    MissingParametersError,
    PlatformAuthError,
    PlatformError,
    SessionNotFoundError,
    VideoNotFoundError,
)
from .interfaces import GameMediaRepository, UploadSessionRepository, VideoPlatform
from ..domain.reconciliation import select_exact_title_match
from ..domain.session import InvalidTransitionError, utcnow
from ..domain.video_id import PlaceholderVideoId, RealVideoId

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class ReconcileVideoIdUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        platform: VideoPlatform,
        game_media: GameMediaRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._platform = platform
        self._game_media = game_media
        self._clock = clock

    def execute(self, command: ReconcileVideoIdCommand) -> str:
        if not command.session_id:
            raise MissingParametersError("Missing required parameter: sessionId")

        session = self._repository.get_for_user(command.session_id, command.user_id)
        if session is None:
            raise SessionNotFoundError()

        if not isinstance(session.video_id, PlaceholderVideoId):
            raise InvalidSessionStateError("Invalid session - not a placeholder video ID")

        title = session.title
        if title is None:
            raise InvalidSessionStateError("Invalid session - missing video metadata")

        if not self._platform.credentials_configured:
            raise CredentialsNotConfiguredError("YouTube API credentials not configured")
        if not self._platform.channel_configured:
            raise CredentialsNotConfiguredError("YouTube channel ID not configured")

        try:
            uploads = self._platform.list_recent_uploads()
        except (PlatformAuthError, PlatformError) as exc:
            logger.warning("Channel upload search failed for session %s: %s", session.session_id, exc)
            raise VideoNotFoundError() from exc

        match = select_exact_title_match(uploads, title=title, around=session.created_at)
        if match is None:
            logger.info(
                "No exact title match for session %s among %d recent uploads",
                session.session_id,
                len(uploads),
            )
            raise VideoNotFoundError()

        try:
            resolved = session.completed_with(RealVideoId(match.video_id), now=self._clock())
        except InvalidTransitionError as exc:
            raise InvalidSessionStateError(str(exc)) from exc
        self._repository.save(resolved)
        logger.info("Session %s reconciled to video %s", session.session_id, match.video_id)

        self._persist_game_movie(resolved.session_id, resolved.user_id, title, match.video_id)
        return match.video_id

    def _persist_game_movie(
        self, session_id: str, user_id: str, title: str, video_id: str
    ) -> None:
        try:
            movie_id = self._game_media.create_game_movie(
                title=title, url=WATCH_URL.format(video_id=video_id)
            )
        except Exception:
            logger.exception("Failed to save game movie for video %s", video_id)
            return
        logger.info("Saved game movie %s for video %s", movie_id, video_id)
        try:
            self._repository.delete(session_id, user_id)
        except Exception:
            logger.exception("Failed to delete reconciled upload session %s", session_id)
