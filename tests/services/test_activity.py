# tests/services/test_activity.py
"""Tests for the bounded admin activity log."""

import pytest

from conftest import ADMIN_ACCOUNT, USER_ACCOUNT, FakeClock
from eventpass.db.store import DocumentStore
from eventpass.schemas.activity import ActivityType
from eventpass.services.activity import ActivityRecorder

ADMIN = ADMIN_ACCOUNT.address
TARGET = USER_ACCOUNT.address


@pytest.fixture()
def recorder(store: DocumentStore, clock: FakeClock) -> ActivityRecorder:
    return ActivityRecorder(store, clock, max_entries=5)


def test_record_assigns_id_timestamp_and_description(
    recorder: ActivityRecorder, clock: FakeClock
) -> None:
    activity = recorder.record(ActivityType.ADMIN_LOGIN, ADMIN, {"method": "password"})
    assert activity.id.startswith("activity_")
    assert activity.timestamp == clock()
    assert activity.description == "Admin logged in"
    assert activity.admin_wallet == ADMIN.lower()
    assert recorder.recent() == [activity]


def test_log_is_bounded_fifo(recorder: ActivityRecorder, clock: FakeClock) -> None:
    recorded = []
    for index in range(7):
        clock.advance(1)
        recorded.append(recorder.record(ActivityType.CHECKIN, ADMIN, {"seq": index}))
    recent = recorder.recent(limit=10)
    assert len(recent) == 5
    assert [a.id for a in recent] == [a.id for a in reversed(recorded[2:])]


def test_recent_is_newest_first_and_limited(recorder: ActivityRecorder) -> None:
    first = recorder.record(ActivityType.CHECKIN, ADMIN)
    second = recorder.record(ActivityType.CHECKOUT, ADMIN)
    assert [a.id for a in recorder.recent()] == [second.id, first.id]
    assert [a.id for a in recorder.recent(limit=1)] == [second.id]
    assert recorder.recent(limit=0) == []


def test_by_type(recorder: ActivityRecorder) -> None:
    recorder.record(ActivityType.CHECKIN, ADMIN)
    logout = recorder.record(ActivityType.ADMIN_LOGOUT, ADMIN)
    assert recorder.by_type(ActivityType.ADMIN_LOGOUT) == [logout]


def test_by_wallet_matches_admin_or_target_case_insensitively(
    recorder: ActivityRecorder,
) -> None:
    by_admin = recorder.record(ActivityType.ADMIN_LOGIN, ADMIN)
    targeted = recorder.record(
        ActivityType.SESSIONS_INVALIDATED,
        "0x" + "0" * 40,
        {"target_wallet": TARGET.upper().replace("0X", "0x")},
    )
    assert recorder.by_wallet(TARGET.lower()) == [targeted]
    assert recorder.by_wallet(ADMIN.upper().replace("0X", "0x")) == [by_admin]


def test_clear_older_than(recorder: ActivityRecorder, clock: FakeClock) -> None:
    recorder.record(ActivityType.CHECKIN, ADMIN)
    clock.advance(3 * 86400)
    fresh = recorder.record(ActivityType.CHECKOUT, ADMIN)
    assert recorder.clear_older_than(2) == 1
    assert recorder.recent() == [fresh]
