from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Protocol

if TYPE_CHECKING:
    from ..domain.reconciliation import PlatformUpload
    from ..domain.relay import ChunkRequest, PlatformResponse
    from ..domain.session import UploadSession, UploadStatus, VideoMetadata


class UploadSessionRepository(Protocol):
    def create(self, session: "UploadSession") -> "UploadSession": ...

    def get_for_user(self, session_id: str, user_id: str) -> "UploadSession" | None: ...

    def save(self, session: "UploadSession") -> "UploadSession": ...

    def delete(self, session_id: str, user_id: str) -> None: ...

    def list_for_user(
        self,
        user_id: str,
        *,
        statuses: Iterable["UploadStatus"],
        expires_after: datetime | None = None,
    ) -> list["UploadSession"]: ...


class GameMediaRepository(Protocol):
    def link_match_game(self, game_id: int, video_id: str) -> bool: ...

    def create_game_movie(self, *, title: str, url: str) -> int: ...


class VideoPlatform(Protocol):
    @property
    def credentials_configured(self) -> bool: ...

    @property
    def channel_configured(self) -> bool: ...

    def refresh_access_token(self) -> str: ...

    def open_resumable_session(
        self, *, access_token: str, file_size: int, metadata: "VideoMetadata"
    ) -> str: ...

    def list_recent_uploads(self) -> list["PlatformUpload"]: ...


class ChunkRelay(Protocol):
    async def forward(self, request: "ChunkRequest") -> "PlatformResponse": ...


class PendingSessionsCache(Protocol):
    def get(self, key: str) -> Mapping[str, Any] | None: ...

    def set(self, key: str, payload: Mapping[str, Any]) -> None: ...


class ReconciliationQueue(Protocol):
    def enqueue(self, *, session_id: str, user_id: str) -> str: ...
