from datetime import datetime, timedelta, timezone

import pytest

from services.uploads.domain.reconciliation import PlatformUpload
from services.uploads.domain.relay import PlatformResponse
from services.uploads.domain.session import UploadSession, UploadStatus
from services.uploads.domain.video_id import NoVideoId

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class InMemorySessionRepository:
    def __init__(self):
        self.sessions = {}
        self.saved = []
        self.deleted = []

    def create(self, session):
        self.sessions[session.session_id] = session
        return session

    def get_for_user(self, session_id, user_id):
        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def save(self, session):
        self.sessions[session.session_id] = session
        self.saved.append(session)
        return session

    def delete(self, session_id, user_id):
        self.sessions.pop(session_id, None)
        self.deleted.append(session_id)

    def list_for_user(self, user_id, *, statuses, expires_after=None):
        wanted = set(statuses)
        return [
            session
            for session in self.sessions.values()
            if session.user_id == user_id
            and session.status in wanted
            and (expires_after is None or session.expires_at > expires_after)
        ]


class FakePlatform:
    def __init__(self, *, configured=True, channel="UC123", uploads=None):
        self.configured = configured
        self.channel = channel
        self.uploads = uploads or []
        self.opened = []
        self.refresh_error = None
        self.list_error = None

    @property
    def credentials_configured(self):
        return self.configured

    @property
    def channel_configured(self):
        return bool(self.channel)

    def refresh_access_token(self):
        if self.refresh_error is not None:
            raise self.refresh_error
        return "access-token"

    def open_resumable_session(self, *, access_token, file_size, metadata):
        self.opened.append((access_token, file_size, metadata))
        return "https://upload.example/session-1"

    def list_recent_uploads(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.uploads)


class FakeGameMedia:
    def __init__(self):
        self.links = []
        self.movies = []
        self.link_error = None
        self.movie_error = None

    def link_match_game(self, game_id, video_id):
        if self.link_error is not None:
            raise self.link_error
        self.links.append((game_id, video_id))
        return True

    def create_game_movie(self, *, title, url):
        if self.movie_error is not None:
            raise self.movie_error
        self.movies.append((title, url))
        return len(self.movies)


class FakeReconciliationQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, *, session_id, user_id):
        self.jobs.append((session_id, user_id))
        return f"job-{len(self.jobs)}"


class FakeRelay:
    def __init__(self, response=None):
        self.requests = []
        self.response = response or PlatformResponse(
            status_code=308,
            reason="Resume Incomplete",
            headers={"Range": "bytes=0-1023"},
            content=b"",
        )

    async def forward(self, request):
        self.requests.append(request)
        return self.response


class DictCache:
    def __init__(self):
        self.entries = {}

    def get(self, key):
        return self.entries.get(key)

    def set(self, key, payload):
        self.entries[key] = payload


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def repository():
    return InMemorySessionRepository()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def game_media():
    return FakeGameMedia()


@pytest.fixture
def reconciliation_queue():
    return FakeReconciliationQueue()


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def pending_cache():
    return DictCache()


@pytest.fixture
def make_session(repository):
    def factory(**overrides):
        values = dict(
            session_id="sess-1",
            user_id="user-1",
            file_name="final.mp4",
            file_size=1000,
            youtube_session_id="session_1_user-1",
            youtube_upload_url="https://upload.example/session-1",
            uploaded_bytes=0,
            status=UploadStatus.PENDING,
            created_at=NOW - timedelta(hours=1),
            updated_at=NOW - timedelta(hours=1),
            expires_at=NOW + timedelta(hours=23),
            video_id=NoVideoId(),
            metadata={"title": "Final - Match 3", "description": ""},
        )
        values.update(overrides)
        session = UploadSession(**values)
        repository.create(session)
        return session

    return factory


@pytest.fixture
def platform_upload():
    def factory(video_id, title, published_at=NOW):
        return PlatformUpload(video_id=video_id, title=title, published_at=published_at)

    return factory
