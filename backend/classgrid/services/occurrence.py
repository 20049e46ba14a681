"""Projection of weekly entries onto concrete calendar dates."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from classgrid.services.interval import DayOfWeek, Interval


@dataclass(frozen=True)
class Occurrence:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str
    by_day: str
    anchor: Occurrence

    @property
    def rrule(self) -> str:
        return f"FREQ={self.frequency};BYDAY={self.by_day}"


def resolve_timezone(name: str) -> tzinfo:
    if name.strip().upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _interval_of(item) -> Interval:
    return item if isinstance(item, Interval) else item.interval


def _at(day: date, minute_of_day: int, zone: tzinfo | None) -> datetime:
    wall = datetime.combine(day, time(0, 0), tzinfo=zone) + timedelta(minutes=minute_of_day)
    if zone is None:
        return wall
    # Wall times skipped by a DST jump resolve to the real instant after it.
    return wall.astimezone(timezone.utc).astimezone(zone)


def _is_before(start: datetime, reference: datetime) -> bool:
    if start.tzinfo is None:
        return start < reference
    return start.astimezone(timezone.utc) < reference.astimezone(timezone.utc)


def _after(start: datetime, duration: timedelta) -> datetime:
    if start.tzinfo is None:
        return start + duration
    return (start.astimezone(timezone.utc) + duration).astimezone(start.tzinfo)


def next_occurrence(entry, reference: datetime) -> Occurrence:
    """Return the first occurrence whose start is not earlier than ``reference``.

    Dates are computed in ``reference``'s own timezone. When ``reference``
    falls on the entry's weekday after the start time, the next week is used.
    The past check and the duration are taken in absolute time, so occurrences
    around DST changes keep their real length.
    """
    interval = _interval_of(entry)
    days_ahead = (interval.day - DayOfWeek.from_date(reference)) % 7
    day = reference.date() + timedelta(days=days_ahead)
    start = _at(day, interval.start_minute, reference.tzinfo)
    if _is_before(start, reference):
        day += timedelta(days=7)
        start = _at(day, interval.start_minute, reference.tzinfo)
    duration = timedelta(minutes=interval.end_minute - interval.start_minute)
    return Occurrence(start=start, end=_after(start, duration))


def to_recurrence_rule(entry, reference: datetime) -> RecurrenceRule:
    interval = _interval_of(entry)
    return RecurrenceRule(
        frequency="WEEKLY",
        by_day=interval.day.ical_code,
        anchor=next_occurrence(interval, reference),
    )
