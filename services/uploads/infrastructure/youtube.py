"""YouTube Data API access: token refresh, resumable sessions, channel uploads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..application.errors import PlatformAuthError, PlatformError
from ..application.interfaces import VideoPlatform
from ..domain.reconciliation import PlatformUpload
from ..domain.session import VideoMetadata

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
RESUMABLE_UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
SCOPES = [
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube.readonly",
]
RECENT_UPLOADS_LIMIT = 50


def _build_service(credentials: Credentials):
    return build("youtube", "v3", credentials=credentials, cache_discovery=False)


def _parse_published_at(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class YouTubePlatform(VideoPlatform):
    def __init__(
        self,
        *,
        client_id: str | None,
        client_secret: str | None,
        refresh_token: str | None,
        channel_id: str | None,
        http_client: httpx.Client | None = None,
        service_factory: Callable[[Credentials], Any] = _build_service,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._channel_id = channel_id
        self._http = http_client or httpx.Client(timeout=60.0)
        self._service_factory = service_factory
        self._credentials: Optional[Credentials] = None

    @property
    def credentials_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._refresh_token)

    @property
    def channel_configured(self) -> bool:
        return bool(self._channel_id)

    def refresh_access_token(self) -> str:
        credentials = Credentials(
            token=None,
            refresh_token=self._refresh_token,
            client_id=self._client_id,
            client_secret=self._client_secret,
            token_uri=TOKEN_URI,
            scopes=SCOPES,
        )
        try:
            logger.info("Refreshing YouTube access token")
            credentials.refresh(Request())
        except RefreshError as exc:
            logger.error("Failed to refresh YouTube access token: %s", exc)
            raise PlatformAuthError("Failed to authenticate with YouTube API") from exc
        except TransportError as exc:
            logger.error("Token endpoint unreachable: %s", exc)
            raise PlatformError(f"YouTube API error: {exc}") from exc
        self._credentials = credentials
        return credentials.token

    def open_resumable_session(
        self, *, access_token: str, file_size: int, metadata: VideoMetadata
    ) -> str:
        body = {
            "snippet": {
                "title": metadata.title,
                "description": metadata.description,
                "tags": list(metadata.tags),
                "categoryId": metadata.category_id,
            },
            "status": {"privacyStatus": metadata.privacy},
        }
        try:
            response = self._http.post(
                RESUMABLE_UPLOAD_URL,
                params={"uploadType": "resumable", "part": "snippet,status"},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "X-Upload-Content-Type": "video/*",
                    "X-Upload-Content-Length": str(file_size),
                },
                json=body,
            )
        except httpx.HTTPError as exc:
            raise PlatformError(f"YouTube API error: {exc}") from exc

        if response.is_error:
            logger.error("YouTube API error %s: %s", response.status_code, response.text)
            raise PlatformError(
                f"YouTube API error: {response.status_code} - {response.text}"
            )
        upload_url = response.headers.get("location")
        if not upload_url:
            raise PlatformError("YouTube API error: No upload URL received from YouTube API")
        return upload_url

    def list_recent_uploads(self) -> list[PlatformUpload]:
        self.refresh_access_token()
        service = self._service_factory(self._credentials)
        try:
            channels = (
                service.channels()
                .list(part="contentDetails", id=self._channel_id)
                .execute()
            )
            items = channels.get("items") or []
            if not items:
                raise PlatformError(f"Channel not found: {self._channel_id}")
            playlist_id = (
                items[0]
                .get("contentDetails", {})
                .get("relatedPlaylists", {})
                .get("uploads")
            )
            if not playlist_id:
                raise PlatformError("Uploads playlist not found")
            response = (
                service.playlistItems()
                .list(part="snippet", playlistId=playlist_id, maxResults=RECENT_UPLOADS_LIMIT)
                .execute()
            )
        except HttpError as exc:
            raise PlatformError(f"YouTube API error: {exc}") from exc

        uploads: list[PlatformUpload] = []
        for item in response.get("items", []):
            snippet = item.get("snippet") or {}
            video_id = (snippet.get("resourceId") or {}).get("videoId")
            published_at = snippet.get("publishedAt")
            if not video_id or not published_at:
                continue
            uploads.append(
                PlatformUpload(
                    video_id=video_id,
                    title=snippet.get("title") or "",
                    published_at=_parse_published_at(published_at),
                )
            )
        logger.debug("Fetched %d recent uploads from playlist %s", len(uploads), playlist_id)
        return uploads
