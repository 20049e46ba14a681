"""Day-of-week and time-of-day intervals for weekly recurring sessions.

Intervals are half-open: ``[start, end)``. A session that ends at 10:00 does
not overlap one that starts at 10:00.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

from classgrid.core.exceptions import InvalidIntervalError, ValidationError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
MINUTES_PER_DAY = 24 * 60


class DayOfWeek(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def parse(cls, value: "DayOfWeek | int | str") -> "DayOfWeek":
        """Accept an upper-case weekday name (any case) or a 0-6 integer, Sunday = 0."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValidationError("Invalid dayOfWeek value", field="dayOfWeek")
        if isinstance(value, int):
            if 0 <= value <= 6:
                return cls(value)
            raise ValidationError("dayOfWeek must be between 0 (Sunday) and 6 (Saturday)", field="dayOfWeek")
        if isinstance(value, str):
            cleaned = value.strip()
            if cleaned.isdigit():
                return cls.parse(int(cleaned))
            try:
                return cls[cleaned.upper()]
            except KeyError:
                pass
        raise ValidationError(f"Invalid dayOfWeek value: {value!r}", field="dayOfWeek")

    @property
    def ical_code(self) -> str:
        return self.name[:2]

    @classmethod
    def from_date(cls, value) -> "DayOfWeek":
        # date.weekday() counts Monday as 0.
        return cls((value.weekday() + 1) % 7)


def parse_time_to_minutes(value: str, field: str = "time") -> int:
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValidationError("Time must be in HH:MM 24-hour format", field=field)
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(value: int) -> str:
    hours, minutes = divmod(value, 60)
    return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class Interval:
    day: DayOfWeek
    start_minute: int
    end_minute: int

    @classmethod
    def from_boundary(cls, day_of_week, start_time: str, end_time: str) -> "Interval":
        interval = cls(
            DayOfWeek.parse(day_of_week),
            parse_time_to_minutes(start_time, field="startTime"),
            parse_time_to_minutes(end_time, field="endTime"),
        )
        return validate(interval)

    @property
    def start_time(self) -> str:
        return format_minutes(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end_minute)


def is_valid(interval: Interval) -> bool:
    return 0 <= interval.start_minute < interval.end_minute <= MINUTES_PER_DAY


def validate(interval: Interval) -> Interval:
    if not is_valid(interval):
        raise InvalidIntervalError(
            f"End time must be after start time ({interval.start_time} - {interval.end_time})",
            field="endTime",
        )
    return interval


def overlaps(a: Interval, b: Interval) -> bool:
    return a.day == b.day and a.start_minute < b.end_minute and b.start_minute < a.end_minute
