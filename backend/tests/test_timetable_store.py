import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classgrid.core.exceptions import (
    InvalidIntervalError,
    NotFoundError,
    SchedulingConflictError,
    StoreError,
    ValidationError,
)
from classgrid.models.activity_log import ActivityLog
from classgrid.models.timetable_entry import TimetableEntry
from classgrid.services.conflict_detector import Candidate
from classgrid.services.interval import DayOfWeek, Interval
from classgrid.services.locks import scope_keys
from classgrid.services.timetable_store import TimetableStore


def draft(batch_id, teacher_id, day, start, end, room=None):
    return Candidate(
        batch_id=batch_id,
        teacher_id=teacher_id,
        interval=Interval.from_boundary(day, start, end),
        room=room,
    )


def test_insert_returns_detached_entry_with_defaults(store):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00", room="R1"), actor_id="admin-1")

    assert entry.id is not None
    assert entry.is_active is True
    assert entry.start_time == "09:00"
    assert entry.end_time == "10:00"
    assert entry.room == "R1"
    assert entry.created_at is not None


def test_insert_rejects_overlap_and_carries_conflicting_entries(store):
    first = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))

    with pytest.raises(SchedulingConflictError) as exc_info:
        store.insert_if_no_conflict(draft(7, 5, "MONDAY", "09:30", "10:30"))

    error = exc_info.value
    assert error.status_code == 409
    assert [item.id for item in error.conflicting_entries] == [first.id]
    assert error.details["hasConflict"] is True
    assert error.details["conflicts"][0]["dayOfWeek"] == "MONDAY"
    assert len(store.find_by_batch(7)) == 1


def test_update_excludes_own_entry_from_conflict_scope(store):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))

    updated = store.update_if_no_conflict(entry.id, {"start_minute": 570, "end_minute": 660})

    assert updated.id == entry.id
    assert (updated.start_time, updated.end_time) == ("09:30", "11:00")


def test_update_rejects_conflict_with_other_entry(store):
    store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    other = store.insert_if_no_conflict(draft(9, 3, "TUESDAY", "09:00", "10:00"))

    with pytest.raises(SchedulingConflictError) as exc_info:
        store.update_if_no_conflict(other.id, {"day_of_week": DayOfWeek.MONDAY})

    assert exc_info.value.report.conflicts[0].scopes == ["teacher"]
    assert store.get(other.id).day_of_week == int(DayOfWeek.TUESDAY)


def test_update_validates_merged_interval(store):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    with pytest.raises(InvalidIntervalError):
        store.update_if_no_conflict(entry.id, {"start_minute": 600})


def test_update_rejects_unknown_fields(store):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    with pytest.raises(ValidationError) as exc_info:
        store.update_if_no_conflict(entry.id, {"batch_id": 9})
    assert exc_info.value.field == "batch_id"


def test_update_of_missing_or_inactive_entry_is_not_found(store):
    with pytest.raises(NotFoundError):
        store.update_if_no_conflict(999, {"room": "R2"})

    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    store.deactivate(entry.id)
    with pytest.raises(NotFoundError):
        store.update_if_no_conflict(entry.id, {"room": "R2"})


def test_deactivate_is_idempotent_and_keeps_the_row(store, session_factory):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))

    first = store.deactivate(entry.id)
    second = store.deactivate(entry.id)

    assert first.is_active is False
    assert second.is_active is False
    assert store.find_by_batch(7) == []
    assert store.find_by_teacher(3) == []
    with session_factory() as session:
        row = session.get(TimetableEntry, entry.id)
        assert row is not None
        assert row.is_active is False
        actions = list(
            session.scalars(select(ActivityLog.action).where(ActivityLog.entity_id == str(entry.id)))
        )
    assert sorted(actions) == ["timetable.create", "timetable.deactivate"]


def test_deactivated_slot_can_be_reused(store):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    store.deactivate(entry.id)
    replacement = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    assert replacement.id != entry.id


def test_deactivate_unknown_entry_is_not_found(store):
    with pytest.raises(NotFoundError):
        store.deactivate(12345)


def test_listings_are_ordered_by_day_then_start(store):
    store.insert_if_no_conflict(draft(7, None, "WEDNESDAY", "08:00", "09:00"))
    store.insert_if_no_conflict(draft(7, None, "MONDAY", "11:00", "12:00"))
    store.insert_if_no_conflict(draft(7, None, "SUNDAY", "15:00", "16:00"))
    store.insert_if_no_conflict(draft(7, None, "MONDAY", "08:00", "09:00"))

    ordered = [(entry.day_of_week, entry.start_time) for entry in store.find_by_batch(7)]
    assert ordered == [(0, "15:00"), (1, "08:00"), (1, "11:00"), (3, "08:00")]


def move_to_tuesday_after_first_read(monkeypatch, store, session_factory):
    read_entry = store._get_active
    moved = []

    def read_then_move(entry_id):
        entry = read_entry(entry_id)
        if not moved:
            with session_factory() as session, session.begin():
                session.get(TimetableEntry, entry_id).day_of_week = int(DayOfWeek.TUESDAY)
            moved.append(entry_id)
        return entry

    monkeypatch.setattr(store, "_get_active", read_then_move)


def record_held_keys(monkeypatch, store):
    hold = store._locks.hold
    held = []

    def recording_hold(keys):
        keys = list(keys)
        held.append(keys)
        return hold(keys)

    monkeypatch.setattr(store._locks, "hold", recording_hold)
    return held


def test_update_relocks_when_entry_moves_before_locks_are_taken(monkeypatch, store, session_factory):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    move_to_tuesday_after_first_read(monkeypatch, store, session_factory)
    held = record_held_keys(monkeypatch, store)

    updated = store.update_if_no_conflict(entry.id, {"start_minute": 600, "end_minute": 660})

    assert held == [scope_keys(7, 3, DayOfWeek.MONDAY), scope_keys(7, 3, DayOfWeek.TUESDAY)]
    assert updated.day_of_week == DayOfWeek.TUESDAY
    assert (updated.start_time, updated.end_time) == ("10:00", "11:00")


def test_update_checks_conflicts_in_the_scope_the_entry_moved_to(monkeypatch, store, session_factory):
    entry = store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    blocker = store.insert_if_no_conflict(draft(7, 5, "TUESDAY", "10:30", "11:30"))
    move_to_tuesday_after_first_read(monkeypatch, store, session_factory)

    with pytest.raises(SchedulingConflictError) as exc_info:
        store.update_if_no_conflict(entry.id, {"start_minute": 600, "end_minute": 660})

    assert [item.id for item in exc_info.value.conflicting_entries] == [blocker.id]
    stored = store.get(entry.id)
    assert stored.day_of_week == DayOfWeek.TUESDAY
    assert (stored.start_time, stored.end_time) == ("09:00", "10:00")


def test_find_by_level_uses_roster(store):
    store.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
    store.insert_if_no_conflict(draft(11, 4, "MONDAY", "09:00", "10:00"))
    store.insert_if_no_conflict(draft(9, 5, "MONDAY", "09:00", "10:00"))

    assert sorted(entry.batch_id for entry in store.find_by_level(1)) == [7, 11]
    assert store.find_by_level(99) == []


def test_database_failures_surface_as_store_error():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # No tables created, so every statement fails.
    broken = TimetableStore(sessionmaker(bind=engine))

    with pytest.raises(StoreError) as exc_info:
        broken.find_by_batch(7)
    assert exc_info.value.status_code == 503

    with pytest.raises(StoreError):
        broken.insert_if_no_conflict(draft(7, 3, "MONDAY", "09:00", "10:00"))
