from __future__ import annotations

from collections.abc import Iterable

from classgrid.models.timetable_entry import TimetableEntry
from classgrid.services.interval import DayOfWeek
from classgrid.services.timetable_store import TimetableStore


def group_by_day(entries: Iterable[TimetableEntry]) -> dict[DayOfWeek, list[TimetableEntry]]:
    grouped: dict[DayOfWeek, list[TimetableEntry]] = {day: [] for day in DayOfWeek}
    for entry in entries:
        grouped[DayOfWeek(entry.day_of_week)].append(entry)
    for day_entries in grouped.values():
        day_entries.sort(key=lambda item: (item.start_minute, item.id))
    return grouped


class ScheduleAggregator:
    """Dashboard views computed from the store on every call."""

    def __init__(self, store: TimetableStore) -> None:
        self._store = store

    def weekly_grouping(
        self,
        *,
        batch_id: int | None = None,
        teacher_id: int | None = None,
    ) -> dict[DayOfWeek, list[TimetableEntry]]:
        if batch_id is not None:
            entries = self._store.find_by_batch(batch_id)
            if teacher_id is not None:
                entries = [entry for entry in entries if entry.teacher_id == teacher_id]
        elif teacher_id is not None:
            entries = self._store.find_by_teacher(teacher_id)
        else:
            entries = self._store.find_active()
        return group_by_day(entries)

    def by_batch(self, batch_id: int) -> list[TimetableEntry]:
        return self._store.find_by_batch(batch_id)

    def by_teacher(self, teacher_id: int) -> list[TimetableEntry]:
        return self._store.find_by_teacher(teacher_id)

    def by_level(self, level_id: int) -> list[TimetableEntry]:
        return self._store.find_by_level(level_id)
