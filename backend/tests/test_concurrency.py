import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from classgrid.core.exceptions import SchedulingConflictError
from classgrid.db.base import Base
from classgrid.schemas.timetable import TimetableEntryOut
from classgrid.services.engine import SchedulingEngine
from classgrid.services.locks import DEFAULT_SCOPE_LOCKS, ScopeLockRegistry, advisory_lock_id, scope_keys
from classgrid.services.timetable_store import TimetableStore

WORKERS = 8


@pytest.fixture()
def file_scheduler(tmp_path, roster):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'timetable.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    store = TimetableStore(sessionmaker(bind=engine, autoflush=False), roster=roster)
    yield SchedulingEngine(store, roster)
    engine.dispose()


def run_concurrently(func):
    barrier = threading.Barrier(WORKERS)

    def attempt(index):
        barrier.wait()
        try:
            return func(index)
        except SchedulingConflictError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(attempt, range(WORKERS)))


def assert_single_winner(results):
    winners = [item for item in results if isinstance(item, TimetableEntryOut)]
    losers = [item for item in results if isinstance(item, SchedulingConflictError)]
    assert len(winners) == 1
    assert len(losers) == WORKERS - 1
    for loser in losers:
        assert [entry.id for entry in loser.conflicting_entries] == [winners[0].id]
    return winners[0]


def test_concurrent_batch_conflicts_have_one_winner(file_scheduler):
    results = run_concurrently(
        lambda index: file_scheduler.create_entry(
            batch_id=7,
            teacher_id=100 + index,
            day_of_week="MONDAY",
            start_time=f"09:{index:02d}",
            end_time="10:30",
        )
    )
    winner = assert_single_winner(results)
    assert [entry.id for entry in file_scheduler.list_by_batch(7)] == [winner.id]


def test_concurrent_teacher_conflicts_have_one_winner(file_scheduler):
    results = run_concurrently(
        lambda index: file_scheduler.create_entry(
            batch_id=200 + index,
            teacher_id=3,
            day_of_week="TUESDAY",
            start_time="14:00",
            end_time="15:00",
        )
    )
    winner = assert_single_winner(results)
    assert [entry.id for entry in file_scheduler.list_by_teacher(3)] == [winner.id]


def test_concurrent_updates_into_same_slot_keep_invariant(file_scheduler):
    entries = [
        file_scheduler.create_entry(
            batch_id=7,
            day_of_week="WEDNESDAY",
            start_time=f"{8 + index:02d}:00",
            end_time=f"{8 + index:02d}:30",
        )
        for index in range(WORKERS)
    ]

    results = run_concurrently(
        lambda index: file_scheduler.update_entry(entries[index].id, day_of_week="FRIDAY", start_time="09:00", end_time="10:00")
    )

    assert_single_winner(results)
    active = file_scheduler.list_by_batch(7)
    assert len(active) == WORKERS
    for i, first in enumerate(active):
        for second in active[i + 1:]:
            a = (first.day_of_week, first.start_time, first.end_time)
            b = (second.day_of_week, second.start_time, second.end_time)
            assert not (a[0] == b[0] and a[1] < b[2] and b[1] < a[2])


def test_scope_keys_and_lock_registry():
    assert scope_keys(7, None, 1) == [("batch", 7, 1)]
    assert scope_keys(7, 3, 1) == [("batch", 7, 1), ("teacher", 3, 1)]
    assert advisory_lock_id(("batch", 7, 1)) == advisory_lock_id(("batch", 7, 1))
    assert advisory_lock_id(("batch", 7, 1)) != advisory_lock_id(("teacher", 7, 1))

    registry = ScopeLockRegistry()
    with registry.hold(scope_keys(7, 3, 1)):
        with registry.hold(scope_keys(9, None, 1)):
            pass
    with registry.hold(scope_keys(7, 3, 1)):
        pass
    assert len(registry._locks) == 3


def test_stores_without_explicit_locks_exclude_each_other(session_factory):
    first = TimetableStore(session_factory)
    second = TimetableStore(session_factory)
    keys = scope_keys(7, 3, 1)

    assert first._locks is second._locks is DEFAULT_SCOPE_LOCKS
    with first._locks.hold(keys):
        assert all(second._locks._lock_for(key).locked() for key in keys)
    assert not any(second._locks._lock_for(key).locked() for key in keys)
