from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_serializer, field_validator

from classgrid.core.exceptions import AppError
from classgrid.services.interval import TIME_PATTERN, DayOfWeek


def _parse_day(value):
    try:
        return DayOfWeek.parse(value)
    except AppError as exc:
        raise ValueError(exc.message) from exc


def _check_time(value: str | None) -> str | None:
    if value is not None and not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value


class TimetableEntryCreate(BaseModel):
    batch_id: int = Field(alias="batchId", ge=1)
    teacher_id: int | None = Field(default=None, alias="teacherId", ge=1)
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    room: str | None = Field(default=None, max_length=100)
    subject: str | None = Field(default=None, max_length=200)

    model_config = {"populate_by_name": True}

    @field_validator("day_of_week", mode="before")
    @classmethod
    def validate_day(cls, value):
        return _parse_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return _check_time(value)


class TimetableEntryUpdate(BaseModel):
    teacher_id: int | None = Field(default=None, alias="teacherId", ge=1)
    day_of_week: DayOfWeek | None = Field(default=None, alias="dayOfWeek")
    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    room: str | None = Field(default=None, max_length=100)
    subject: str | None = Field(default=None, max_length=200)

    model_config = {"populate_by_name": True}

    @field_validator("day_of_week", mode="before")
    @classmethod
    def validate_day(cls, value):
        if value is None:
            return None
        return _parse_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        return _check_time(value)


class TimetableEntryOut(BaseModel):
    id: int
    batch_id: int = Field(alias="batchId")
    teacher_id: int | None = Field(default=None, alias="teacherId")
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    room: str | None = None
    subject: str | None = None
    is_active: bool = Field(alias="isActive")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @field_validator("day_of_week", mode="before")
    @classmethod
    def validate_day(cls, value):
        return _parse_day(value)

    @field_serializer("day_of_week")
    def serialize_day(self, value: DayOfWeek) -> str:
        return value.name


class EntrySummary(BaseModel):
    id: int
    batch_id: int = Field(alias="batchId")
    teacher_id: int | None = Field(default=None, alias="teacherId")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    room: str | None = None
    subject: str | None = None

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
