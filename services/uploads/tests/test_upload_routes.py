import asyncio
import threading
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from services.uploads.api.routes import UploadUseCases
from services.uploads.application.check_platform_auth import CheckPlatformAuthUseCase
from services.uploads.application.errors import PlatformAuthError
from services.uploads.application.finalize_upload import FinalizeUploadUseCase
from services.uploads.application.get_session_status import GetSessionStatusUseCase
from services.uploads.application.initiate_upload import InitiateUploadUseCase
from services.uploads.application.list_pending_sessions import ListPendingSessionsUseCase
from services.uploads.application.reconcile_video_id import ReconcileVideoIdUseCase
from services.uploads.application.relay_chunk import RelayChunkUseCase
from services.uploads.application.report_progress import ReportProgressUseCase
from services.uploads.application.resume_upload import ResumeUploadUseCase
from services.uploads.domain.relay import PlatformResponse
from services.uploads.domain.session import UploadStatus
from services.uploads.domain.user import AuthenticatedUser
from services.uploads.domain.video_id import PlaceholderVideoId
from services.uploads.main import create_app

AUTH = {"Authorization": "Bearer good-token"}


class FakeIdentityProvider:
    def get_user(self, access_token):
        if access_token == "good-token":
            return AuthenticatedUser(user_id="user-1", email="captain@club.example")
        return None


class BarrierIdentityProvider:
    """Only answers once `parties` lookups are in flight at the same time."""

    def __init__(self, parties):
        self._barrier = threading.Barrier(parties, timeout=5)

    def get_user(self, access_token):
        try:
            self._barrier.wait()
        except threading.BrokenBarrierError:
            return None
        return AuthenticatedUser(user_id="user-1", email="captain@club.example")


@pytest.fixture
def use_cases(repository, platform, game_media, relay, pending_cache, reconciliation_queue, clock):
    return UploadUseCases(
        initiate=InitiateUploadUseCase(
            repository=repository,
            platform=platform,
            session_ttl=timedelta(hours=24),
            clock=clock,
        ),
        relay=RelayChunkUseCase(repository=repository, relay=relay),
        finalize=FinalizeUploadUseCase(
            repository=repository,
            game_media=game_media,
            reconciliation_queue=reconciliation_queue,
            clock=clock,
        ),
        resume=ResumeUploadUseCase(repository=repository, clock=clock),
        pending=ListPendingSessionsUseCase(repository=repository, cache=pending_cache, clock=clock),
        progress=ReportProgressUseCase(repository=repository, clock=clock),
        status=GetSessionStatusUseCase(repository=repository, clock=clock),
        reconcile=ReconcileVideoIdUseCase(
            repository=repository, platform=platform, game_media=game_media, clock=clock
        ),
        auth_status=CheckPlatformAuthUseCase(platform=platform),
    )


@pytest.fixture
def client(use_cases):
    return TestClient(create_app(use_cases, FakeIdentityProvider()))


def test_ping(client):
    assert client.get("/ping").json() == {"message": "pong"}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "Basic x"}])
def test_endpoints_require_a_caller(client, headers):
    response = client.get("/api/youtube/upload/pending", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_initiate_then_finalize(client, repository, game_media):
    response = client.post(
        "/api/youtube/upload/initiate",
        headers=AUTH,
        json={
            "fileName": "final.mp4",
            "fileSize": 300_000_000,
            "metadata": {"title": "Final", "description": "", "gameResultId": "3"},
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["uploadUrl"] == "https://upload.example/session-1"
    assert body["expiresAt"].endswith("Z")

    response = client.post(
        "/api/youtube/upload/finalize",
        headers=AUTH,
        json={"sessionId": body["sessionId"], "youtubeVideoId": "vid42"},
    )
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "sessionId": body["sessionId"],
        "youtubeVideoId": "vid42",
        "status": "completed",
        "message": "Upload completed successfully",
    }
    assert game_media.links == [(3, "vid42")]


def test_initiate_missing_parameters_is_400(client):
    response = client.post("/api/youtube/upload/initiate", headers=AUTH, json={"fileName": "a.mp4"})
    assert response.status_code == 400
    assert "Missing required parameters" in response.json()["error"]


def test_proxy_passes_platform_range_through(client, make_session, relay):
    make_session()
    response = client.put(
        "/api/youtube/upload/proxy",
        headers={
            **AUTH,
            "X-Upload-Url": "https://upload.example/session-1",
            "X-Session-Id": "sess-1",
            "Content-Range": "bytes 0-1023/4096",
            "Content-Type": "application/octet-stream",
        },
        content=b"x" * 1024,
    )
    assert response.status_code == 308
    assert response.headers["range"] == "bytes=0-1023"
    assert response.content == b""
    assert relay.requests[0].body == b"x" * 1024


def test_proxy_accepts_query_parameters_and_relays_json(client, make_session, relay):
    make_session()
    relay.response = PlatformResponse(
        status_code=200,
        reason="OK",
        headers={"Content-Type": "application/json", "X-GUploader-UploadID": "z"},
        content=b'{"id": "vid42", "kind": "youtube#video"}',
    )
    response = client.put(
        "/api/youtube/upload/proxy",
        params={"uploadUrl": "https://upload.example/session-1", "sessionId": "sess-1"},
        headers={**AUTH, "Content-Range": "bytes 3072-4095/4096"},
        content=b"y" * 1024,
    )
    assert response.status_code == 200
    assert response.json() == {"id": "vid42", "kind": "youtube#video"}
    assert "x-guploader-uploadid" not in response.headers


def test_proxy_rejects_unknown_session(client):
    response = client.put(
        "/api/youtube/upload/proxy",
        headers={**AUTH, "X-Upload-Url": "https://upload.example/s", "X-Session-Id": "nope"},
        content=b"",
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Invalid upload session"}


def test_pending_sets_private_cache_header(client, make_session):
    make_session()
    response = client.get("/api/youtube/upload/pending", headers=AUTH)
    assert response.status_code == 200
    assert response.headers["cache-control"] == "private, max-age=300"
    body = response.json()
    assert body["sessions"][0]["canResume"] is True
    assert body["stats"]["total"] == 1


def test_resume_expired_session_is_gone(client, make_session, now):
    make_session(status=UploadStatus.UPLOADING, expires_at=now - timedelta(hours=1))
    response = client.post("/api/youtube/upload/resume/sess-1", headers=AUTH)
    assert response.status_code == 410
    assert response.json() == {
        "error": "Session expired",
        "message": "Please start a new upload session",
        "canCreateNew": True,
    }


def test_resume_returns_upload_url(client, make_session):
    make_session(status=UploadStatus.UPLOADING, uploaded_bytes=250)
    response = client.post("/api/youtube/upload/resume/sess-1", headers=AUTH)
    assert response.status_code == 200
    body = response.json()
    assert body["uploadUrl"] == "https://upload.example/session-1"
    assert body["uploadedBytes"] == 250
    assert body["progress"] == 25
    assert body["status"] == "uploading"


def test_progress_and_status_endpoints(client, make_session):
    make_session(status=UploadStatus.UPLOADING)
    response = client.post(
        "/api/youtube/upload/progress",
        headers=AUTH,
        json={"sessionId": "sess-1", "uploadedBytes": 500},
    )
    assert response.json() == {
        "success": True,
        "progress": 50,
        "uploadedBytes": 500,
        "totalBytes": 1000,
        "status": "uploading",
    }

    status = client.get("/api/youtube/upload/status/sess-1", headers=AUTH).json()
    assert status["uploadedBytes"] == 500
    assert status["isExpired"] is False


def test_sync_video_id(client, make_session, platform, platform_upload, now):
    make_session(
        status=UploadStatus.PROCESSING,
        video_id=PlaceholderVideoId("1"),
        created_at=now,
        metadata={"title": "Final - Match 3"},
    )
    platform.uploads = [platform_upload("vid77", "final - match 3")]

    response = client.post("/api/youtube/syncVideoId", headers=AUTH, json={"sessionId": "sess-1"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "videoId": "vid77"}

    response = client.post("/api/youtube/syncVideoId", headers=AUTH, json={})
    assert response.status_code == 400


def test_auth_status_reports_refresh_outcome(client, platform):
    assert client.get("/api/youtube/auth-status", headers=AUTH).json()["authenticated"] is True
    platform.refresh_error = PlatformAuthError("Failed to authenticate with YouTube API")
    body = client.get("/api/youtube/auth-status", headers=AUTH).json()
    assert body["authenticated"] is False
    assert body["success"] is True


def test_identity_lookups_do_not_block_each_other(use_cases):
    app = create_app(use_cases, BarrierIdentityProvider(parties=3))

    async def run():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            return await asyncio.gather(
                *(http.get("/api/youtube/auth-status", headers=AUTH) for _ in range(3))
            )

    responses = asyncio.run(run())
    assert [response.status_code for response in responses] == [200, 200, 200]


def test_proxy_rejects_upload_url_of_another_session(client, make_session, relay):
    make_session()
    response = client.put(
        "/api/youtube/upload/proxy",
        headers={
            **AUTH,
            "X-Upload-Url": "https://attacker.example/collect",
            "X-Session-Id": "sess-1",
            "Content-Range": "bytes 0-1023/4096",
        },
        content=b"x" * 1024,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Upload URL does not match session"}
    assert relay.requests == []
