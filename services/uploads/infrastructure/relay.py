from __future__ import annotations

import httpx

from ..application.errors import PlatformError
from ..application.interfaces import ChunkRelay
from ..domain.relay import ChunkRequest, PlatformResponse


class HttpxChunkRelay(ChunkRelay):
    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = 300.0) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def forward(self, request: ChunkRequest) -> PlatformResponse:
        headers = {
            "Content-Range": request.content_range or "",
            "Content-Type": request.content_type,
        }
        if request.body:
            headers["Content-Length"] = str(len(request.body))
        try:
            response = await self._client.put(
                request.upload_url,
                headers=headers,
                content=request.body or None,
            )
        except httpx.HTTPError as exc:
            raise PlatformError(str(exc) or exc.__class__.__name__) from exc
        return PlatformResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=dict(response.headers),
            content=response.content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
