from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, sessionmaker

from classgrid.core.exceptions import NotFoundError, SchedulingConflictError, ValidationError
from classgrid.db.errors import translate_store_errors
from classgrid.models.timetable_entry import TimetableEntry
from classgrid.schemas.conflict import ConflictReport
from classgrid.services.audit import log_activity
from classgrid.services.conflict_detector import Candidate, ConflictDetector
from classgrid.services.interval import DayOfWeek, Interval, validate
from classgrid.services.locks import DEFAULT_SCOPE_LOCKS, ScopeLockRegistry, acquire_advisory_locks, scope_keys
from classgrid.services.roster import RosterLookup, StaticRoster

logger = logging.getLogger(__name__)

ENTITY_TYPE = "timetable_entry"
UPDATABLE_FIELDS = {"teacher_id", "day_of_week", "start_minute", "end_minute", "room", "subject"}


def _candidate_keys(candidate: Candidate) -> list:
    return scope_keys(candidate.batch_id, candidate.teacher_id, candidate.interval.day)


def _snapshot(entry: TimetableEntry) -> dict[str, Any]:
    return {
        "batchId": entry.batch_id,
        "teacherId": entry.teacher_id,
        "dayOfWeek": DayOfWeek(entry.day_of_week).name,
        "startTime": entry.start_time,
        "endTime": entry.end_time,
        "room": entry.room,
        "subject": entry.subject,
        "isActive": entry.is_active,
    }


def merge_changes(entry: TimetableEntry, changes: dict[str, Any]) -> Candidate:
    """Build the candidate an update would produce, validating the merged interval."""
    interval = Interval(
        DayOfWeek(changes.get("day_of_week", entry.day_of_week)),
        changes.get("start_minute", entry.start_minute),
        changes.get("end_minute", entry.end_minute),
    )
    return Candidate(
        batch_id=entry.batch_id,
        teacher_id=changes.get("teacher_id", entry.teacher_id),
        interval=validate(interval),
        room=changes.get("room", entry.room),
        subject=changes.get("subject", entry.subject),
    )


class TimetableStore:
    """Persistent timetable entries with conflict-gated writes.

    ``insert_if_no_conflict`` and ``update_if_no_conflict`` run the conflict
    query and the write under the scope locks and inside one transaction, so two
    overlapping candidates submitted concurrently cannot both commit.
    Entries are never deleted; ``deactivate`` flips ``is_active``.

    Stores writing to the same database must share one lock registry. Without
    an explicit ``locks`` argument every store uses ``DEFAULT_SCOPE_LOCKS``.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        roster: RosterLookup | None = None,
        locks: ScopeLockRegistry | None = None,
        detector: ConflictDetector | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._roster = roster or StaticRoster()
        self._locks = locks or DEFAULT_SCOPE_LOCKS
        self._detector = detector or ConflictDetector()

    def _session(self) -> Session:
        # Returned entries outlive the session, so keep their loaded state on commit.
        return self._session_factory(expire_on_commit=False)

    def get(self, entry_id: int) -> TimetableEntry:
        with translate_store_errors("timetable lookup"), self._session() as session:
            entry = session.get(TimetableEntry, entry_id)
            if entry is None:
                raise NotFoundError("TimetableEntry", entry_id)
            return entry

    def check_conflicts(self, candidate: Candidate, exclude_id: int | None = None) -> ConflictReport:
        with translate_store_errors("conflict check"), self._session() as session:
            return self._detector.detect(session, candidate, exclude_id)

    def insert_if_no_conflict(self, candidate: Candidate, *, actor_id: str | None = None) -> TimetableEntry:
        keys = _candidate_keys(candidate)
        with translate_store_errors("timetable insert"), self._locks.hold(keys):
            with self._session() as session, session.begin():
                acquire_advisory_locks(session, keys)
                report = self._detector.detect(session, candidate)
                if report.has_conflict:
                    logger.warning(
                        "Rejected timetable entry for batch %s on %s %s-%s: conflicts with %s",
                        candidate.batch_id,
                        candidate.interval.day.name,
                        candidate.interval.start_time,
                        candidate.interval.end_time,
                        [item.id for item in report.conflicts],
                    )
                    raise SchedulingConflictError(report)

                entry = TimetableEntry(
                    batch_id=candidate.batch_id,
                    teacher_id=candidate.teacher_id,
                    day_of_week=int(candidate.interval.day),
                    start_minute=candidate.interval.start_minute,
                    end_minute=candidate.interval.end_minute,
                    room=candidate.room,
                    subject=candidate.subject,
                    is_active=True,
                )
                session.add(entry)
                session.flush()
                session.refresh(entry)
                log_activity(
                    session,
                    actor_id=actor_id,
                    action="timetable.create",
                    entity_type=ENTITY_TYPE,
                    entity_id=entry.id,
                    details=_snapshot(entry),
                )
        logger.info("Created timetable entry %s for batch %s", entry.id, entry.batch_id)
        return entry

    def update_if_no_conflict(
        self,
        entry_id: int,
        changes: dict[str, Any],
        *,
        actor_id: str | None = None,
    ) -> TimetableEntry:
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Field {unknown[0]} cannot be updated", field=unknown[0])

        while True:
            current = self._get_active(entry_id)
            keys = _candidate_keys(merge_changes(current, changes))
            entry = self._update_locked(entry_id, changes, keys, actor_id)
            if entry is not None:
                logger.info("Updated timetable entry %s", entry_id)
                return entry
            # Someone changed the entry's scope before we took the locks.
            logger.debug("Scope of timetable entry %s moved while locking, retrying", entry_id)

    def _get_active(self, entry_id: int) -> TimetableEntry:
        entry = self.get(entry_id)
        if not entry.is_active:
            raise NotFoundError("TimetableEntry", entry_id)
        return entry

    def _update_locked(
        self,
        entry_id: int,
        changes: dict[str, Any],
        keys: list,
        actor_id: str | None,
    ) -> TimetableEntry | None:
        with translate_store_errors("timetable update"), self._locks.hold(keys):
            with self._session() as session, session.begin():
                acquire_advisory_locks(session, keys)
                entry = session.get(TimetableEntry, entry_id)
                if entry is None or not entry.is_active:
                    raise NotFoundError("TimetableEntry", entry_id)
                candidate = merge_changes(entry, changes)
                if _candidate_keys(candidate) != keys:
                    return None

                report = self._detector.detect(session, candidate, exclude_id=entry_id)
                if report.has_conflict:
                    logger.warning(
                        "Rejected update of timetable entry %s: conflicts with %s",
                        entry_id,
                        [item.id for item in report.conflicts],
                    )
                    raise SchedulingConflictError(report)

                before = _snapshot(entry)
                entry.teacher_id = candidate.teacher_id
                entry.day_of_week = int(candidate.interval.day)
                entry.start_minute = candidate.interval.start_minute
                entry.end_minute = candidate.interval.end_minute
                entry.room = candidate.room
                entry.subject = candidate.subject
                session.flush()
                session.refresh(entry)
                log_activity(
                    session,
                    actor_id=actor_id,
                    action="timetable.update",
                    entity_type=ENTITY_TYPE,
                    entity_id=entry.id,
                    details={"before": before, "after": _snapshot(entry)},
                )
            return entry

    def deactivate(self, entry_id: int, *, actor_id: str | None = None) -> TimetableEntry:
        with translate_store_errors("timetable deactivate"):
            with self._session() as session, session.begin():
                entry = session.get(TimetableEntry, entry_id)
                if entry is None:
                    raise NotFoundError("TimetableEntry", entry_id)
                if not entry.is_active:
                    return entry
                entry.is_active = False
                session.flush()
                session.refresh(entry)
                log_activity(
                    session,
                    actor_id=actor_id,
                    action="timetable.deactivate",
                    entity_type=ENTITY_TYPE,
                    entity_id=entry.id,
                )
        logger.info("Deactivated timetable entry %s", entry_id)
        return entry

    def _active_query(self) -> Select:
        return (
            select(TimetableEntry)
            .where(TimetableEntry.is_active.is_(True))
            .order_by(TimetableEntry.day_of_week, TimetableEntry.start_minute, TimetableEntry.id)
        )

    def _fetch(self, stmt: Select, operation: str) -> list[TimetableEntry]:
        with translate_store_errors(operation), self._session() as session:
            return list(session.scalars(stmt))

    def find_active(self) -> list[TimetableEntry]:
        return self._fetch(self._active_query(), "timetable listing")

    def find_by_batch(self, batch_id: int) -> list[TimetableEntry]:
        stmt = self._active_query().where(TimetableEntry.batch_id == batch_id)
        return self._fetch(stmt, "timetable listing by batch")

    def find_by_batches(self, batch_ids: Iterable[int]) -> list[TimetableEntry]:
        ids = sorted(set(batch_ids))
        if not ids:
            return []
        stmt = self._active_query().where(TimetableEntry.batch_id.in_(ids))
        return self._fetch(stmt, "timetable listing by batches")

    def find_by_teacher(self, teacher_id: int) -> list[TimetableEntry]:
        stmt = self._active_query().where(TimetableEntry.teacher_id == teacher_id)
        return self._fetch(stmt, "timetable listing by teacher")

    def find_by_level(self, level_id: int) -> list[TimetableEntry]:
        return self.find_by_batches(self._roster.batch_ids_for_level(level_id))
