from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from .errors import UploadError
from .local_state import UPLOAD_STATE_MAX_AGE_MS, LocalUploadState, UploadStateRepository

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 10.0
VISIBLE_RECHECK_DELAY = 1.0
INITIAL_CHECK_DELAY = 2.0

RESUMABLE_STATUSES = ("pending", "uploading")

SessionsCallback = Callable[[list[dict[str, Any]]], None]


class PendingSessionsSource(Protocol):
    async def pending_sessions(self, include_expired: bool = False) -> list[dict[str, Any]]: ...


def _iso_from_ms(epoch_ms: int) -> str:
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def local_state_as_session(state: LocalUploadState) -> dict[str, Any]:
    """Approximate a server session row from a locally mirrored upload."""
    progress = (
        round(state.uploaded_bytes / state.total_bytes * 100) if state.total_bytes else 0
    )
    return {
        "sessionId": state.session_id,
        "fileName": state.file_name,
        "fileSize": state.total_bytes,
        "uploadedBytes": state.uploaded_bytes,
        "progress": progress,
        "status": "uploading",
        "youtubeVideoId": None,
        "youtubeUploadUrl": state.upload_url,
        "metadata": {"title": state.file_name, "description": ""},
        "errorMessage": None,
        "expiresAt": _iso_from_ms(state.last_update + UPLOAD_STATE_MAX_AGE_MS),
        "createdAt": _iso_from_ms(state.last_update),
        "updatedAt": _iso_from_ms(state.last_update),
        "isExpired": False,
        "canResume": True,
    }


def merge_sessions(
    server_sessions: list[dict[str, Any]],
    local_states: list[LocalUploadState],
) -> list[dict[str, Any]]:
    merged = list(server_sessions)
    known = {session["sessionId"] for session in server_sessions}
    for state in local_states:
        if state.session_id not in known:
            merged.append(local_state_as_session(state))
            known.add(state.session_id)
    return [
        session
        for session in merged
        if not session.get("isExpired")
        and session.get("status") in RESUMABLE_STATUSES
        and int(session.get("uploadedBytes") or 0) > 0
    ]


class ResumeCoordinator:
    """Keeps the list of uploads that can be offered for resumption."""

    def __init__(
        self,
        api: PendingSessionsSource,
        states: UploadStateRepository,
        *,
        on_sessions_found: SessionsCallback | None = None,
        check_interval: float = CHECK_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._states = states
        self._on_sessions_found = on_sessions_found
        self._check_interval = check_interval
        self._sleep = sleep
        self.pending_sessions: list[dict[str, Any]] = []

    @property
    def has_resumable_sessions(self) -> bool:
        return bool(self.pending_sessions)

    def next_interval(self) -> float:
        if self.has_resumable_sessions:
            return self._check_interval
        return self._check_interval * 2

    async def _fetch_server_sessions(self) -> list[dict[str, Any]]:
        try:
            sessions = await self._api.pending_sessions()
        except UploadError as exc:
            logger.error("Failed to fetch pending sessions: %s", exc.message)
            return []
        return [session for session in sessions if session.get("canResume")]

    async def check_pending_sessions(self) -> list[dict[str, Any]]:
        server_sessions = await self._fetch_server_sessions()
        local_states = self._states.load_all()
        self.pending_sessions = merge_sessions(server_sessions, local_states)
        if self.pending_sessions and self._on_sessions_found is not None:
            self._on_sessions_found(list(self.pending_sessions))
        return self.pending_sessions

    def clear_session(self, session_id: str) -> None:
        self._states.clear(session_id)
        self.pending_sessions = [
            session
            for session in self.pending_sessions
            if session["sessionId"] != session_id
        ]

    async def handle_visibility_change(self, hidden: bool) -> None:
        if hidden:
            return
        await self._sleep(VISIBLE_RECHECK_DELAY)
        await self.check_pending_sessions()

    async def run(self, stop: asyncio.Event | None = None) -> None:
        stop = stop or asyncio.Event()
        await self._sleep(INITIAL_CHECK_DELAY)
        while not stop.is_set():
            await self.check_pending_sessions()
            if self._check_interval <= 0:
                return
            await self._sleep(self.next_interval())
