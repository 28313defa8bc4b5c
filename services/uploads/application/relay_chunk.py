from __future__ import annotations

import json
import logging

from .dto import RelayChunkCommand
from .errors import InvalidSessionStateError, MissingParametersError, SessionNotFoundError
from .interfaces import ChunkRelay, UploadSessionRepository
from ..domain.relay import (
    EMPTY_BODY_STATUSES,
    ChunkRequest,
    PlatformResponse,
    RelayedResponse,
    filter_platform_headers,
)

logger = logging.getLogger(__name__)


class RelayChunkUseCase:
    """Forwards one byte range to the platform's resumable upload URL."""

    def __init__(self, *, repository: UploadSessionRepository, relay: ChunkRelay) -> None:
        self._repository = repository
        self._relay = relay

    async def execute(self, command: RelayChunkCommand) -> RelayedResponse:
        if not command.upload_url or not command.session_id:
            raise MissingParametersError("Missing uploadUrl or sessionId parameter")

        session = self._repository.get_for_user(command.session_id, command.user_id)
        if session is None:
            logger.warning("Relay rejected for unknown session %s", command.session_id)
            raise SessionNotFoundError("Invalid upload session")
        if command.upload_url != session.youtube_upload_url:
            logger.warning("Relay rejected for session %s: upload URL mismatch", command.session_id)
            raise InvalidSessionStateError("Upload URL does not match session")

        logger.debug(
            "Proxying chunk %s (%d bytes) for session %s",
            command.content_range,
            len(command.body),
            command.session_id,
        )
        response = await self._relay.forward(
            ChunkRequest(
                upload_url=command.upload_url,
                session_id=command.session_id,
                content_range=command.content_range,
                content_type=command.content_type,
                body=command.body,
            )
        )
        logger.debug("Platform answered %s %s", response.status_code, response.reason)
        return RelayedResponse(
            status_code=response.status_code,
            headers=filter_platform_headers(response.headers),
            body=decode_platform_body(response),
        )


def decode_platform_body(response: PlatformResponse) -> object:
    if response.status_code in EMPTY_BODY_STATUSES:
        return None
    text = response.content.decode("utf-8", errors="replace")
    if not text.strip():
        return None
    content_type = next(
        (value for key, value in response.headers.items() if key.lower() == "content-type"),
        "",
    )
    if "application/json" in content_type:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Platform sent unparsable JSON; relaying raw text")
            return text
    return text
