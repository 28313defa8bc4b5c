"""Async client for the ``/api/youtube`` endpoints of the uploads service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from .errors import SessionExpiredError, UploadError, UploadErrorType
from .settings import UploaderSettings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/youtube"


@dataclass(frozen=True)
class InitiatedSession:
    session_id: str
    upload_url: str
    expires_at: str


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}: {response.reason_phrase}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return default


def error_from_response(
    response: httpx.Response,
    default: str,
    *,
    session_id: str | None = None,
) -> UploadError:
    message = _error_message(response, default)
    status = response.status_code
    if status == 401:
        return UploadError(message, UploadErrorType.UNAUTHORIZED, session_id=session_id)
    if status == 410:
        return SessionExpiredError(message, session_id=session_id)
    if status in (502, 503, 504):
        return UploadError(
            message, UploadErrorType.NETWORK_ERROR, retryable=True, session_id=session_id
        )
    return UploadError(
        message,
        UploadErrorType.SERVER_ERROR,
        retryable=status >= 500,
        session_id=session_id,
    )


class ServerApi:
    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 300.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._base_url = base_url.rstrip("/") + API_PREFIX
        self._auth = {"Authorization": f"Bearer {access_token}"}

    @classmethod
    def from_settings(cls, settings: UploaderSettings, **kwargs: Any) -> "ServerApi":
        return cls(settings.base_url, settings.access_token, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        default_error: str,
        session_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, self._base_url + path, headers=self._auth, **kwargs
            )
        except httpx.TransportError as exc:
            raise UploadError(
                "Network connection failed",
                UploadErrorType.NETWORK_ERROR,
                session_id=session_id,
            ) from exc
        if response.is_error:
            raise error_from_response(response, default_error, session_id=session_id)
        return response

    async def initiate(
        self, file_name: str, file_size: int, metadata: Mapping[str, Any]
    ) -> InitiatedSession:
        response = await self._send(
            "POST",
            "/upload/initiate",
            default_error="Failed to initiate upload session",
            json={"fileName": file_name, "fileSize": file_size, "metadata": dict(metadata)},
        )
        data = response.json()
        logger.info("Upload session %s initiated", data["sessionId"])
        return InitiatedSession(
            session_id=data["sessionId"],
            upload_url=data["uploadUrl"],
            expires_at=data["expiresAt"],
        )

    async def relay_chunk(
        self,
        upload_url: str,
        session_id: str,
        content_range: str,
        body: bytes,
    ) -> httpx.Response:
        """PUT one byte range through the relay.

        Transport errors propagate untouched and every status is returned as
        is; the uploader decides what counts as a failure.
        """
        headers = {
            **self._auth,
            "X-Upload-Url": upload_url,
            "X-Session-Id": session_id,
            "Content-Range": content_range,
            "Content-Type": "application/octet-stream",
        }
        return await self._client.put(
            self._base_url + "/upload/proxy", headers=headers, content=body
        )

    async def finalize(self, session_id: str, video_id: str) -> dict[str, Any]:
        response = await self._send(
            "POST",
            "/upload/finalize",
            default_error="Failed to finalize upload",
            session_id=session_id,
            json={"sessionId": session_id, "youtubeVideoId": video_id},
        )
        return response.json()

    async def resume(self, session_id: str) -> dict[str, Any]:
        response = await self._send(
            "POST",
            f"/upload/resume/{session_id}",
            default_error="Failed to resume upload session",
            session_id=session_id,
        )
        return response.json()

    async def report_progress(self, session_id: str, uploaded_bytes: int) -> None:
        try:
            await self._send(
                "POST",
                "/upload/progress",
                default_error="Progress update failed",
                session_id=session_id,
                json={"sessionId": session_id, "uploadedBytes": uploaded_bytes},
            )
        except UploadError as exc:
            logger.warning("Progress update failed for %s: %s", session_id, exc.message)

    async def pending_sessions(self, include_expired: bool = False) -> list[dict[str, Any]]:
        response = await self._send(
            "GET",
            "/upload/pending",
            default_error="Failed to fetch pending sessions",
            params={"includeExpired": "true" if include_expired else "false"},
        )
        return list(response.json().get("sessions", []))
