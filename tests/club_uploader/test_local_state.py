import logging

import pytest

from club_uploader.local_state import (
    UPLOAD_STATE_MAX_AGE_MS,
    LocalStateStore,
    LocalUploadState,
    UploadStateRepository,
)

NOW_MS = 1_772_366_400_000


@pytest.fixture
def store(tmp_path):
    return LocalStateStore(tmp_path / "state")


@pytest.fixture
def states(store):
    return UploadStateRepository(store, clock_ms=lambda: NOW_MS)


def _state(session_id, last_update, uploaded=1024):
    return LocalUploadState(
        session_id=session_id,
        file_name="final.mp4",
        uploaded_bytes=uploaded,
        total_bytes=4096,
        upload_url="https://upload.example/session-1",
        last_update=last_update,
    )


def test_state_is_stored_under_prefixed_camel_case_key(store, states):
    states.save(_state("sess-1", NOW_MS))

    assert store.get("upload_state_sess-1") == {
        "sessionId": "sess-1",
        "fileName": "final.mp4",
        "uploadedBytes": 1024,
        "totalBytes": 4096,
        "uploadUrl": "https://upload.example/session-1",
        "lastUpdate": NOW_MS,
    }
    assert states.load("sess-1") == _state("sess-1", NOW_MS)


def test_load_all_evicts_states_idle_for_a_day(store, states):
    states.save(_state("fresh", NOW_MS - UPLOAD_STATE_MAX_AGE_MS + 1))
    states.save(_state("stale", NOW_MS - UPLOAD_STATE_MAX_AGE_MS))
    store.set("youtube_quota_usage", {"date": "2026-03-01"})

    assert [state.session_id for state in states.load_all()] == ["fresh"]
    assert store.get("upload_state_stale") is None
    assert store.get("youtube_quota_usage") is not None


def test_clear_removes_state(states):
    states.save(_state("sess-1", NOW_MS))
    states.clear("sess-1")
    states.clear("sess-1")
    assert states.load("sess-1") is None


def test_corrupt_entries_are_ignored(tmp_path, caplog):
    directory = tmp_path / "state"
    directory.mkdir()
    (directory / "upload_state_broken.json").write_text("{not json")
    (directory / "upload_state_partial.json").write_text('{"sessionId": "partial"}')
    states = UploadStateRepository(LocalStateStore(directory), clock_ms=lambda: NOW_MS)

    with caplog.at_level(logging.WARNING):
        assert states.load_all() == []
    assert "broken" in caplog.text


def test_rejects_path_like_keys(store):
    with pytest.raises(ValueError):
        store.get("../etc/passwd")
