from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Callable

from .dto import InitiateUploadCommand, InitiatedUpload
from .errors import CredentialsNotConfiguredError, MissingParametersError
from .interfaces import UploadSessionRepository, VideoPlatform
from ..domain.session import UploadSession, UploadStatus, VideoMetadata, utcnow
from ..domain.video_id import NoVideoId

logger = logging.getLogger(__name__)


class InitiateUploadUseCase:
    def __init__(
        self,
        *,
        repository: UploadSessionRepository,
        platform: VideoPlatform,
        session_ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._platform = platform
        self._session_ttl = session_ttl
        self._clock = clock

    def execute(self, command: InitiateUploadCommand) -> InitiatedUpload:
        if not command.file_name or not command.file_size or not command.metadata:
            raise MissingParametersError(
                "Missing required parameters: fileName, fileSize, metadata"
            )
        if not self._platform.credentials_configured:
            logger.error("YouTube API credentials are not configured")
            raise CredentialsNotConfiguredError("YouTube API credentials not configured")

        metadata = VideoMetadata.from_mapping(command.metadata)
        access_token = self._platform.refresh_access_token()
        upload_url = self._platform.open_resumable_session(
            access_token=access_token,
            file_size=command.file_size,
            metadata=metadata,
        )
        logger.info(
            "Opened resumable upload for %s (%s bytes, user=%s)",
            command.file_name,
            command.file_size,
            command.user_id,
        )

        now = self._clock()
        session = UploadSession(
            session_id=uuid.uuid4().hex,
            user_id=command.user_id,
            file_name=command.file_name,
            file_size=command.file_size,
            youtube_session_id=f"session_{int(time.time() * 1000)}_{command.user_id}",
            youtube_upload_url=upload_url,
            uploaded_bytes=0,
            status=UploadStatus.PENDING,
            created_at=now,
            updated_at=now,
            expires_at=now + self._session_ttl,
            video_id=NoVideoId(),
            metadata=dict(command.metadata),
        )
        self._repository.create(session)
        return InitiatedUpload(
            session_id=session.session_id,
            upload_url=upload_url,
            expires_at=session.expires_at,
        )
