from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from typing import Any

from classgrid.core.exceptions import ValidationError
from classgrid.models.timetable_entry import TimetableEntry
from classgrid.schemas.calendar import CalendarEvent, CalendarExport
from classgrid.schemas.conflict import ConflictReport
from classgrid.schemas.timetable import EntrySummary, TimetableEntryOut
from classgrid.services.aggregator import ScheduleAggregator
from classgrid.services.conflict_detector import Candidate
from classgrid.services.interval import DayOfWeek, Interval, parse_time_to_minutes
from classgrid.services.occurrence import to_recurrence_rule
from classgrid.services.roster import RosterLookup
from classgrid.services.timetable_store import TimetableStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require_id(value: Any, field: str, *, optional: bool = False) -> int | None:
    if value is None:
        if optional:
            return None
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value


def _to_out(entries: list[TimetableEntry]) -> list[TimetableEntryOut]:
    return [TimetableEntryOut.model_validate(entry) for entry in entries]


class SchedulingEngine:
    """Public scheduling API composed from an injected store and roster.

    Day and time values are accepted in their boundary form (weekday name or
    0-6 integer, ``HH:MM`` strings) and converted here before reaching the store.
    """

    def __init__(
        self,
        store: TimetableStore,
        roster: RosterLookup,
        *,
        calendar_timezone: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._roster = roster
        self._aggregator = ScheduleAggregator(store)
        self._timezone = calendar_timezone
        self._clock = clock

    def create_entry(
        self,
        *,
        batch_id: int,
        day_of_week: DayOfWeek | int | str,
        start_time: str,
        end_time: str,
        teacher_id: int | None = None,
        room: str | None = None,
        subject: str | None = None,
        actor_id: str | None = None,
    ) -> TimetableEntryOut:
        candidate = Candidate(
            batch_id=_require_id(batch_id, "batchId"),
            teacher_id=_require_id(teacher_id, "teacherId", optional=True),
            interval=Interval.from_boundary(day_of_week, start_time, end_time),
            room=room,
            subject=subject,
        )
        entry = self._store.insert_if_no_conflict(candidate, actor_id=actor_id)
        return TimetableEntryOut.model_validate(entry)

    def update_entry(self, entry_id: int, *, actor_id: str | None = None, **fields: Any) -> TimetableEntryOut:
        changes: dict[str, Any] = {}
        for key, value in fields.items():
            if key == "teacher_id":
                changes["teacher_id"] = _require_id(value, "teacherId", optional=True)
            elif key == "day_of_week":
                changes["day_of_week"] = DayOfWeek.parse(value)
            elif key == "start_time":
                changes["start_minute"] = parse_time_to_minutes(value, field="startTime")
            elif key == "end_time":
                changes["end_minute"] = parse_time_to_minutes(value, field="endTime")
            elif key in ("room", "subject"):
                changes[key] = value
            else:
                raise ValidationError(f"Field {key} cannot be updated", field=key)
        entry = self._store.update_if_no_conflict(entry_id, changes, actor_id=actor_id)
        return TimetableEntryOut.model_validate(entry)

    def deactivate(self, entry_id: int, *, actor_id: str | None = None) -> None:
        self._store.deactivate(entry_id, actor_id=actor_id)

    def get_entry(self, entry_id: int) -> TimetableEntryOut:
        return TimetableEntryOut.model_validate(self._store.get(entry_id))

    def check_conflict(
        self,
        batch_id: int,
        day_of_week: DayOfWeek | int | str,
        start_time: str,
        end_time: str,
        teacher_id: int | None = None,
    ) -> ConflictReport:
        candidate = Candidate(
            batch_id=_require_id(batch_id, "batchId"),
            teacher_id=_require_id(teacher_id, "teacherId", optional=True),
            interval=Interval.from_boundary(day_of_week, start_time, end_time),
        )
        return self._store.check_conflicts(candidate)

    def list_by_batch(self, batch_id: int) -> list[TimetableEntryOut]:
        return _to_out(self._aggregator.by_batch(batch_id))

    def list_by_teacher(self, teacher_id: int) -> list[TimetableEntryOut]:
        return _to_out(self._aggregator.by_teacher(teacher_id))

    def list_by_level(self, level_id: int) -> list[TimetableEntryOut]:
        return _to_out(self._aggregator.by_level(level_id))

    def weekly_grouping(
        self,
        *,
        batch_id: int | None = None,
        teacher_id: int | None = None,
    ) -> dict[DayOfWeek, list[EntrySummary]]:
        grouped = self._aggregator.weekly_grouping(batch_id=batch_id, teacher_id=teacher_id)
        return {
            day: [EntrySummary.model_validate(entry) for entry in entries]
            for day, entries in grouped.items()
        }

    def export_calendar(self, batch_id: int, reference: datetime | None = None) -> CalendarExport:
        now = (reference or self._clock()).astimezone(self._timezone)
        batch_name = self._roster.batch_name(batch_id) or f"Batch {batch_id}"
        events: list[CalendarEvent] = []
        for entry in self._store.find_by_batch(batch_id):
            rule = to_recurrence_rule(entry, now)
            summary = f"{batch_name} - {entry.subject}" if entry.subject else f"{batch_name} Class"
            events.append(
                CalendarEvent(
                    uid=f"timetable-entry-{entry.id}@classgrid",
                    summary=summary,
                    dtstart=rule.anchor.start.isoformat(),
                    dtend=rule.anchor.end.isoformat(),
                    rrule=rule.rrule,
                    location=entry.room or "",
                    description=f"Teacher ID: {entry.teacher_id or 'TBA'}",
                )
            )
        logger.debug("Exported %d calendar event(s) for batch %s", len(events), batch_id)
        return CalendarExport(batch_id=batch_id, timezone=str(self._timezone), events=events)
