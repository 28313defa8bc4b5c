from datetime import timedelta

import pytest

from services.uploads.application.dto import (
    FinalizeUploadCommand,
    InitiateUploadCommand,
    ListPendingSessionsQuery,
    ReportProgressCommand,
    ResumeUploadCommand,
    SessionStatusQuery,
)
from services.uploads.application.errors import (
    CredentialsNotConfiguredError,
    InvalidSessionStateError,
    MissingParametersError,
    PlatformAuthError,
    SessionExpiredError,
    SessionFailedError,
    SessionNotFoundError,
)
from services.uploads.application.finalize_upload import FinalizeUploadUseCase
from services.uploads.application.get_session_status import GetSessionStatusUseCase
from services.uploads.application.initiate_upload import InitiateUploadUseCase
from services.uploads.application.list_pending_sessions import ListPendingSessionsUseCase
from services.uploads.application.report_progress import ReportProgressUseCase
from services.uploads.application.resume_upload import (
    EXPIRED_MESSAGE,
    ResumeUploadUseCase,
)
from services.uploads.domain.session import UploadStatus
from services.uploads.domain.video_id import NoVideoId, PlaceholderVideoId, RealVideoId

METADATA = {"title": "Final - Match 3", "description": "club final", "gameResultId": "7"}


def _initiate(repository, platform, clock):
    return InitiateUploadUseCase(
        repository=repository,
        platform=platform,
        session_ttl=timedelta(hours=24),
        clock=clock,
    )


def test_initiate_persists_pending_session(repository, platform, clock, now):
    result = _initiate(repository, platform, clock).execute(
        InitiateUploadCommand(
            user_id="user-1", file_name="final.mp4", file_size=300_000_000, metadata=METADATA
        )
    )

    assert result.upload_url == "https://upload.example/session-1"
    assert result.expires_at == now + timedelta(hours=24)
    stored = repository.sessions[result.session_id]
    assert stored.status is UploadStatus.PENDING
    assert stored.uploaded_bytes == 0
    assert stored.video_id == NoVideoId()
    assert stored.youtube_session_id.startswith("session_")
    assert stored.youtube_session_id.endswith("_user-1")
    _, file_size, metadata = platform.opened[0]
    assert file_size == 300_000_000
    assert metadata.privacy == "unlisted"


@pytest.mark.parametrize(
    "file_name,file_size,metadata",
    [(None, 10, METADATA), ("a.mp4", None, METADATA), ("a.mp4", 10, None)],
)
def test_initiate_requires_all_parameters(repository, platform, clock, file_name, file_size, metadata):
    with pytest.raises(MissingParametersError) as excinfo:
        _initiate(repository, platform, clock).execute(
            InitiateUploadCommand(
                user_id="user-1", file_name=file_name, file_size=file_size, metadata=metadata
            )
        )
    assert excinfo.value.status_code == 400
    assert repository.sessions == {}


def test_initiate_without_credentials_is_a_server_error(repository, platform, clock):
    platform.configured = False
    with pytest.raises(CredentialsNotConfiguredError) as excinfo:
        _initiate(repository, platform, clock).execute(
            InitiateUploadCommand(
                user_id="user-1", file_name="a.mp4", file_size=10, metadata=METADATA
            )
        )
    assert excinfo.value.status_code == 500


def test_initiate_surfaces_credential_refresh_failure(repository, platform, clock):
    platform.refresh_error = PlatformAuthError("Failed to authenticate with YouTube API")
    with pytest.raises(PlatformAuthError) as excinfo:
        _initiate(repository, platform, clock).execute(
            InitiateUploadCommand(
                user_id="user-1", file_name="a.mp4", file_size=10, metadata=METADATA
            )
        )
    assert excinfo.value.status_code == 401
    assert repository.sessions == {}


def _finalize(repository, game_media, clock, queue=None):
    return FinalizeUploadUseCase(
        repository=repository,
        game_media=game_media,
        reconciliation_queue=queue,
        clock=clock,
    )


def test_finalize_completes_and_links_game(repository, game_media, clock, make_session):
    make_session(status=UploadStatus.UPLOADING, uploaded_bytes=600, metadata=METADATA)

    result = _finalize(repository, game_media, clock).execute(
        FinalizeUploadCommand(user_id="user-1", session_id="sess-1", youtube_video_id="vid123")
    )

    assert result.status is UploadStatus.COMPLETED
    stored = repository.sessions["sess-1"]
    assert stored.uploaded_bytes == stored.file_size
    assert stored.video_id == RealVideoId("vid123")
    assert game_media.links == [(7, "vid123")]


def test_finalize_swallows_link_failures(repository, game_media, clock, make_session):
    make_session(status=UploadStatus.UPLOADING, metadata=METADATA)
    game_media.link_error = RuntimeError("db down")

    result = _finalize(repository, game_media, clock).execute(
        FinalizeUploadCommand(user_id="user-1", session_id="sess-1", youtube_video_id="vid123")
    )

    assert result.status is UploadStatus.COMPLETED
    assert repository.sessions["sess-1"].status is UploadStatus.COMPLETED


def test_finalize_with_placeholder_waits_for_reconciliation(
    repository, game_media, clock, make_session, reconciliation_queue
):
    make_session(status=UploadStatus.UPLOADING, metadata=METADATA)

    result = _finalize(repository, game_media, clock, reconciliation_queue).execute(
        FinalizeUploadCommand(
            user_id="user-1", session_id="sess-1", youtube_video_id="placeholder_1700"
        )
    )

    assert result.status is UploadStatus.PROCESSING
    assert result.video_id == "placeholder_1700"
    assert repository.sessions["sess-1"].video_id == PlaceholderVideoId("1700")
    assert reconciliation_queue.jobs == [("sess-1", "user-1")]
    assert game_media.links == []


def test_finalize_unknown_session_is_not_found(repository, game_media, clock, make_session):
    make_session(user_id="someone-else")
    with pytest.raises(SessionNotFoundError) as excinfo:
        _finalize(repository, game_media, clock).execute(
            FinalizeUploadCommand(user_id="user-1", session_id="sess-1", youtube_video_id="v")
        )
    assert excinfo.value.status_code == 404


def test_finalize_rejects_expired_session_state(repository, game_media, clock, make_session):
    make_session(status=UploadStatus.EXPIRED)
    with pytest.raises(InvalidSessionStateError):
        _finalize(repository, game_media, clock).execute(
            FinalizeUploadCommand(user_id="user-1", session_id="sess-1", youtube_video_id="v")
        )


def test_resume_completed_session_is_idempotent(repository, clock, make_session, now):
    session = make_session(
        status=UploadStatus.COMPLETED,
        uploaded_bytes=1000,
        video_id=RealVideoId("vid"),
        expires_at=now - timedelta(days=1),
    )

    outcome = ResumeUploadUseCase(repository=repository, clock=clock).execute(
        ResumeUploadCommand(user_id="user-1", session_id="sess-1")
    )

    assert outcome.already_completed
    assert outcome.session.video_id.stored == "vid"
    assert repository.saved == []
    assert repository.sessions["sess-1"] == session


@pytest.mark.parametrize(
    "status", [UploadStatus.PENDING, UploadStatus.UPLOADING, UploadStatus.FAILED]
)
def test_resume_after_expiry_returns_gone(repository, clock, make_session, now, status):
    make_session(status=status, expires_at=now - timedelta(minutes=1))

    with pytest.raises(SessionExpiredError) as excinfo:
        ResumeUploadUseCase(repository=repository, clock=clock).execute(
            ResumeUploadCommand(user_id="user-1", session_id="sess-1")
        )

    assert excinfo.value.status_code == 410
    assert excinfo.value.to_payload()["canCreateNew"] is True
    stored = repository.sessions["sess-1"]
    assert stored.status is UploadStatus.EXPIRED
    assert stored.error_message == EXPIRED_MESSAGE


def test_resume_failed_session_offers_retry(repository, clock, make_session):
    make_session(status=UploadStatus.FAILED, error_message="platform rejected chunk")

    with pytest.raises(SessionFailedError) as excinfo:
        ResumeUploadUseCase(repository=repository, clock=clock).execute(
            ResumeUploadCommand(user_id="user-1", session_id="sess-1")
        )

    payload = excinfo.value.to_payload()
    assert excinfo.value.status_code == 400
    assert payload["canRetry"] is True
    assert payload["errorMessage"] == "platform rejected chunk"


def test_resume_stored_expired_session_is_gone(repository, clock, make_session):
    make_session(status=UploadStatus.EXPIRED)
    with pytest.raises(SessionExpiredError):
        ResumeUploadUseCase(repository=repository, clock=clock).execute(
            ResumeUploadCommand(user_id="user-1", session_id="sess-1")
        )


def test_resume_moves_processing_session_back_to_uploading(repository, clock, make_session):
    make_session(status=UploadStatus.PROCESSING, uploaded_bytes=500)

    outcome = ResumeUploadUseCase(repository=repository, clock=clock).execute(
        ResumeUploadCommand(user_id="user-1", session_id="sess-1")
    )

    assert not outcome.already_completed
    assert outcome.session.status is UploadStatus.UPLOADING
    assert outcome.session.uploaded_bytes == 500
    assert repository.sessions["sess-1"].status is UploadStatus.UPLOADING


def test_pending_list_for_fresh_session(repository, clock, make_session, pending_cache):
    make_session()

    payload = ListPendingSessionsUseCase(
        repository=repository, cache=pending_cache, clock=clock
    ).execute(ListPendingSessionsQuery(user_id="user-1"))

    (entry,) = payload["sessions"]
    assert entry["canResume"] is True
    assert entry["progress"] == 0
    assert entry["isExpired"] is False
    assert payload["stats"] == {
        "total": 1,
        "pending": 1,
        "uploading": 0,
        "processing": 0,
        "expired": 0,
        "resumable": 1,
    }


def test_pending_list_hides_expired_unless_asked(repository, clock, make_session, now, pending_cache):
    make_session(session_id="old", expires_at=now - timedelta(hours=1), status=UploadStatus.UPLOADING)
    make_session(session_id="new", created_at=now, status=UploadStatus.PROCESSING)
    make_session(session_id="done", status=UploadStatus.COMPLETED, video_id=RealVideoId("v"))
    use_case = ListPendingSessionsUseCase(repository=repository, cache=pending_cache, clock=clock)

    default = use_case.execute(ListPendingSessionsQuery(user_id="user-1"))
    assert [s["sessionId"] for s in default["sessions"]] == ["new"]
    assert default["sessions"][0]["canResume"] is False

    everything = use_case.execute(ListPendingSessionsQuery(user_id="user-1", include_expired=True))
    assert [s["sessionId"] for s in everything["sessions"]] == ["new", "old"]
    old = everything["sessions"][1]
    assert old["status"] == "expired"
    assert old["canResume"] is False
    assert everything["stats"]["expired"] == 1


def test_pending_list_is_served_from_cache(repository, clock, make_session, pending_cache):
    make_session()
    use_case = ListPendingSessionsUseCase(repository=repository, cache=pending_cache, clock=clock)
    first = use_case.execute(ListPendingSessionsQuery(user_id="user-1"))

    make_session(session_id="sess-2")
    second = use_case.execute(ListPendingSessionsQuery(user_id="user-1"))

    assert second is first
    assert len(second["sessions"]) == 1


def test_progress_report_persists_bytes(repository, clock, make_session):
    make_session(status=UploadStatus.PENDING)
    use_case = ReportProgressUseCase(repository=repository, clock=clock)

    report = use_case.execute(
        ReportProgressCommand(user_id="user-1", session_id="sess-1", uploaded_bytes=250)
    )
    assert report.progress == 25
    assert report.status is UploadStatus.UPLOADING

    report = use_case.execute(
        ReportProgressCommand(user_id="user-1", session_id="sess-1", uploaded_bytes=1000)
    )
    assert report.status is UploadStatus.PROCESSING
    assert repository.sessions["sess-1"].uploaded_bytes == 1000


def test_progress_report_rejects_bad_input_and_expiry(repository, clock, make_session, now):
    use_case = ReportProgressUseCase(repository=repository, clock=clock)
    with pytest.raises(MissingParametersError):
        use_case.execute(
            ReportProgressCommand(user_id="user-1", session_id="sess-1", uploaded_bytes="12")
        )
    with pytest.raises(SessionNotFoundError):
        use_case.execute(
            ReportProgressCommand(user_id="user-1", session_id="nope", uploaded_bytes=1)
        )
    make_session(expires_at=now - timedelta(seconds=1))
    with pytest.raises(SessionExpiredError):
        use_case.execute(
            ReportProgressCommand(user_id="user-1", session_id="sess-1", uploaded_bytes=1)
        )


def test_status_view_does_not_rewrite(repository, clock, make_session, now):
    make_session(status=UploadStatus.UPLOADING, expires_at=now - timedelta(hours=2))

    view = GetSessionStatusUseCase(repository=repository, clock=clock).execute(
        SessionStatusQuery(user_id="user-1", session_id="sess-1")
    )

    assert view["status"] == "expired"
    assert view["isExpired"] is True
    assert view["youtubeVideoId"] is None
    assert repository.saved == []
