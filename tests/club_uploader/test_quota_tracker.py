from datetime import date

import pytest

from club_uploader.local_state import LocalStateStore
from club_uploader.quota import DAILY_LIMIT, STORAGE_KEY, UPLOAD_COST, QuotaTracker


class FakeToday:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


@pytest.fixture
def store(tmp_path):
    return LocalStateStore(tmp_path)


def test_six_uploads_fit_in_a_day_and_the_seventh_does_not(store):
    tracker = QuotaTracker(store, today=FakeToday(date(2026, 3, 1)))

    for _ in range(6):
        assert tracker.can_upload()
        tracker.record_upload()

    assert not tracker.can_upload()
    remaining = tracker.remaining()
    assert remaining.remaining == DAILY_LIMIT - 6 * UPLOAD_COST
    assert remaining.max_uploads == 0
    assert remaining.used_today == 6


def test_usage_resets_on_a_new_date(store):
    today = FakeToday(date(2026, 3, 1))
    tracker = QuotaTracker(store, today=today)
    for _ in range(6):
        tracker.record_upload()

    today.value = date(2026, 3, 2)

    assert tracker.can_upload()
    assert tracker.today_usage().uploads == 0
    assert store.get(STORAGE_KEY) == {"date": "2026-03-02", "uploads": 0, "total_units": 0}


def test_usage_survives_a_new_tracker(store):
    today = FakeToday(date(2026, 3, 1))
    QuotaTracker(store, today=today).record_upload()

    usage = QuotaTracker(store, today=today).today_usage()
    assert usage.uploads == 1
    assert usage.total_units == UPLOAD_COST
