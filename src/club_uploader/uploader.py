"""Chunked, resumable upload of a local video through the uploads relay.

Chunks are sent strictly one at a time so that each submission can adapt to
the previous outcome: the chunk size halves after two consecutive failures,
transient failures are retried at the same offset, and the next offset
always comes from the platform's acknowledged ``Range``, never from what the
client believes it sent.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, BinaryIO, Callable, Mapping, TypeVar

import httpx

from .api_client import ServerApi, error_from_response
from .errors import (
    FileMismatchError,
    QuotaExceededError,
    UploadCancelledError,
    UploadError,
    UploadErrorType,
    validate_file,
)
from .local_state import LocalUploadState, UploadStateRepository, epoch_ms
from .progress import SpeedTracker, UploadProgress
from .quota import QuotaTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 32 * 1024 * 1024
MIN_CHUNK_SIZE = 256 * 1024
MAX_RETRIES = 3
RETRY_DELAY = 1.0
CHUNK_UPLOAD_INTERVAL = 1.0
PROGRESS_REPORT_INTERVAL = 10.0
STATUS_PROBE_DELAY = 2.0

PLACEHOLDER_PREFIX = "placeholder_"

_RANGE_PATTERN = re.compile(r"bytes=0-(\d+)")
_VIDEO_ID_IN_URL = re.compile(r"(?:[?&](?:v|id)=|/videos/)([A-Za-z0-9_-]{6,})")
_DONE_STATUSES = (200, 201)
_RESUME_INCOMPLETE = 308

ProgressCallback = Callable[[UploadProgress], None]


def parse_uploaded_bytes(range_header: str | None) -> int:
    """Bytes acknowledged by a ``Range: bytes=0-N`` header; 0 when absent."""
    if not range_header:
        return 0
    match = _RANGE_PATTERN.search(range_header)
    return int(match.group(1)) + 1 if match else 0


def content_range(start: int, end: int, total: int) -> str:
    return f"bytes {start}-{end - 1}/{total}"


def extract_video_id(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("id"), str) and data["id"]:
        return data["id"]
    for header in ("location", "content-location"):
        value = response.headers.get(header)
        if value:
            match = _VIDEO_ID_IN_URL.search(value)
            if match:
                return match.group(1)
    return None


def placeholder_video_id() -> str:
    return f"{PLACEHOLDER_PREFIX}{epoch_ms()}"


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, UploadError) and exc.retryable


class ChunkedUploader:
    def __init__(
        self,
        api: ServerApi,
        *,
        quota: QuotaTracker,
        states: UploadStateRepository,
        on_progress: ProgressCallback | None = None,
        chunk_size: int = CHUNK_SIZE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._quota = quota
        self._states = states
        self._on_progress = on_progress
        self._chunk_size = max(chunk_size, MIN_CHUNK_SIZE)
        self._sleep = sleep
        self._monotonic = monotonic
        self._abort_event = asyncio.Event()
        self._session_id: str | None = None

    def abort(self) -> None:
        self._abort_event.set()

    async def upload_file(self, path: str | os.PathLike[str], metadata: Mapping[str, Any]) -> str:
        file_size = os.path.getsize(path)
        with open(path, "rb") as fh:
            return await self.upload(fh, os.path.basename(path), file_size, metadata)

    async def upload(
        self,
        file: BinaryIO,
        file_name: str,
        file_size: int,
        metadata: Mapping[str, Any],
    ) -> str:
        validate_file(file_name, file_size)
        if not self._quota.can_upload():
            remaining = self._quota.remaining()
            raise QuotaExceededError(remaining.remaining, remaining.max_uploads)

        self._abort_event = asyncio.Event()
        self._session_id = None
        session = await self._race(self._api.initiate(file_name, file_size, metadata))
        self._session_id = session.session_id
        self._save_state(session.session_id, file_name, 0, file_size, session.upload_url)

        video_id = await self._upload_chunks(
            file,
            file_name=file_name,
            file_size=file_size,
            session_id=session.session_id,
            upload_url=session.upload_url,
            offset=0,
        )
        await self._race(self._api.finalize(session.session_id, video_id))
        return video_id

    async def resume_upload(
        self,
        session_id: str,
        file: BinaryIO,
        file_name: str,
        file_size: int,
    ) -> str:
        """Continue an interrupted session from the platform's acknowledged offset."""
        self._abort_event = asyncio.Event()
        self._session_id = session_id
        data = await self._race(self._api.resume(session_id))
        if data.get("status") == "completed":
            return data["youtubeVideoId"]

        local = self._states.load(session_id)
        expected_name = local.file_name if local else data.get("fileName")
        expected_size = local.total_bytes if local else data.get("fileSize")
        if file_name != expected_name or file_size != expected_size:
            raise FileMismatchError(
                original_name=str(expected_name),
                original_size=int(expected_size or 0),
                selected_name=file_name,
                selected_size=file_size,
                session_id=session_id,
            )

        upload_url = data["uploadUrl"]
        offset = int(data.get("uploadedBytes") or 0)
        probe = await self._probe(upload_url, session_id, file_size)
        if probe is not None and probe.status_code in _DONE_STATUSES:
            video_id = self._complete(probe, session_id)
        else:
            if probe is not None and probe.status_code == _RESUME_INCOMPLETE:
                offset = parse_uploaded_bytes(probe.headers.get("range"))
            logger.info("Resuming session %s from %d of %d bytes", session_id, offset, file_size)
            video_id = await self._upload_chunks(
                file,
                file_name=file_name,
                file_size=file_size,
                session_id=session_id,
                upload_url=upload_url,
                offset=offset,
            )
        await self._race(self._api.finalize(session_id, video_id))
        return video_id

    async def _upload_chunks(
        self,
        file: BinaryIO,
        *,
        file_name: str,
        file_size: int,
        session_id: str,
        upload_url: str,
        offset: int,
    ) -> str:
        chunk_size = self._chunk_size
        consecutive_failures = 0
        retries = 0
        last_chunk_at: float | None = None
        last_server_report: float | None = None
        last_progress_at = self._monotonic()
        speed = SpeedTracker()

        while offset < file_size:
            if self._abort_event.is_set():
                raise UploadCancelledError(session_id)
            if last_chunk_at is not None:
                wait = CHUNK_UPLOAD_INTERVAL - (self._monotonic() - last_chunk_at)
                if wait > 0:
                    await self._pause(wait)

            end = min(offset + chunk_size, file_size)
            file.seek(offset)
            body = file.read(end - offset)
            logger.debug("Uploading chunk %d-%d of %d", offset, end - 1, file_size)

            try:
                response = await self._race(
                    self._api.relay_chunk(
                        upload_url, session_id, content_range(offset, end, file_size), body
                    )
                )
                if response.status_code not in _DONE_STATUSES + (_RESUME_INCOMPLETE,):
                    raise error_from_response(
                        response,
                        f"Upload failed with status {response.status_code}",
                        session_id=session_id,
                    )
            except UploadCancelledError:
                raise
            except (httpx.TransportError, UploadError) as exc:
                consecutive_failures += 1
                logger.warning("Chunk %d-%d failed: %s", offset, end - 1, exc)

                if end >= file_size and isinstance(exc, httpx.TransportError):
                    await self._pause(STATUS_PROBE_DELAY)
                    probe = await self._probe(upload_url, session_id, file_size)
                    if probe is not None and probe.status_code in _DONE_STATUSES:
                        logger.info("Upload confirmed complete despite lost final response")
                        return self._complete(probe, session_id)

                if consecutive_failures >= 2 and chunk_size > MIN_CHUNK_SIZE:
                    chunk_size = max(chunk_size // 2, MIN_CHUNK_SIZE)
                    consecutive_failures = 0
                    logger.info("Reducing chunk size to %d bytes", chunk_size)
                    continue

                self._save_state(session_id, file_name, offset, file_size, upload_url)
                if _is_transient(exc) and retries < MAX_RETRIES:
                    retries += 1
                    await self._pause(RETRY_DELAY)
                    continue

                if isinstance(exc, UploadError):
                    raise
                raise UploadError(
                    f"Upload failed: {exc}",
                    UploadErrorType.NETWORK_ERROR,
                    session_id=session_id,
                ) from exc

            last_chunk_at = self._monotonic()
            consecutive_failures = 0
            retries = 0

            if response.status_code != _RESUME_INCOMPLETE:
                return self._complete(response, session_id)

            acknowledged = parse_uploaded_bytes(response.headers.get("range"))
            now = self._monotonic()
            speed.record(end - offset, now - last_progress_at)
            last_progress_at = now
            offset = acknowledged

            if last_server_report is None or now - last_server_report >= PROGRESS_REPORT_INTERVAL:
                await self._race(self._api.report_progress(session_id, offset))
                last_server_report = now

            if self._on_progress is not None:
                self._on_progress(
                    speed.snapshot(offset, file_size, datetime.now(timezone.utc))
                )
            self._save_state(session_id, file_name, offset, file_size, upload_url)

        raise UploadError(
            "Upload completed but no video ID received",
            UploadErrorType.UNKNOWN_ERROR,
            retryable=False,
            session_id=session_id,
        )

    async def _probe(
        self, upload_url: str, session_id: str, file_size: int
    ) -> httpx.Response | None:
        try:
            return await self._race(
                self._api.relay_chunk(upload_url, session_id, f"bytes */{file_size}", b"")
            )
        except UploadCancelledError:
            raise
        except (httpx.TransportError, UploadError) as exc:
            logger.info("Upload status probe failed: %s", exc)
            return None

    def _complete(self, response: httpx.Response, session_id: str) -> str:
        video_id = extract_video_id(response)
        if video_id is None:
            video_id = placeholder_video_id()
            logger.warning(
                "Completion response for %s carried no video id; using %s",
                session_id,
                video_id,
            )
        self._quota.record_upload()
        self._states.clear(session_id)
        return video_id

    def _save_state(
        self,
        session_id: str,
        file_name: str,
        uploaded_bytes: int,
        total_bytes: int,
        upload_url: str,
    ) -> None:
        self._states.save(
            LocalUploadState(
                session_id=session_id,
                file_name=file_name,
                uploaded_bytes=uploaded_bytes,
                total_bytes=total_bytes,
                upload_url=upload_url,
                last_update=epoch_ms(),
            )
        )

    async def _pause(self, seconds: float) -> None:
        await self._race(self._sleep(seconds))

    async def _race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless ``abort()`` fires first."""
        task = asyncio.ensure_future(awaitable)
        abort_wait = asyncio.ensure_future(self._abort_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, abort_wait}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            abort_wait.cancel()
        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise UploadCancelledError(self._session_id)
        return task.result()
