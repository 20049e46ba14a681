from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from classgrid.models.timetable_entry import TimetableEntry
from classgrid.schemas.conflict import ConflictingEntry, ConflictReport, ConflictScope
from classgrid.services.interval import Interval, overlaps


@dataclass(frozen=True)
class Candidate:
    batch_id: int
    teacher_id: int | None
    interval: Interval
    room: str | None = None
    subject: str | None = None


def find_conflicts(candidate: Candidate, existing: Iterable[TimetableEntry]) -> ConflictReport:
    """Compare a candidate against entries already narrowed to its day and scopes.

    Batch scope and teacher scope are checked independently, so an entry that
    shares both the batch and the teacher is reported once with both scopes.
    Entries without a teacher never take part in teacher-scope checks.
    """
    conflicts: list[ConflictingEntry] = []
    for entry in existing:
        if not entry.is_active or not overlaps(candidate.interval, entry.interval):
            continue
        scopes: list[ConflictScope] = []
        if entry.batch_id == candidate.batch_id:
            scopes.append("batch")
        if candidate.teacher_id is not None and entry.teacher_id == candidate.teacher_id:
            scopes.append("teacher")
        if not scopes:
            continue
        detail = ConflictingEntry.model_validate(entry)
        detail.scopes = scopes
        conflicts.append(detail)
    return ConflictReport(has_conflict=bool(conflicts), conflicts=conflicts)


class ConflictDetector:
    def scope_query(self, candidate: Candidate, exclude_id: int | None = None) -> Select:
        scope = [TimetableEntry.batch_id == candidate.batch_id]
        if candidate.teacher_id is not None:
            scope.append(TimetableEntry.teacher_id == candidate.teacher_id)
        stmt = (
            select(TimetableEntry)
            .where(
                TimetableEntry.is_active.is_(True),
                TimetableEntry.day_of_week == int(candidate.interval.day),
                or_(*scope),
            )
            .order_by(TimetableEntry.start_minute, TimetableEntry.id)
        )
        if exclude_id is not None:
            stmt = stmt.where(TimetableEntry.id != exclude_id)
        return stmt

    def detect(self, session: Session, candidate: Candidate, exclude_id: int | None = None) -> ConflictReport:
        return find_conflicts(candidate, session.scalars(self.scope_query(candidate, exclude_id)))
