from typing import Any

from fastapi import APIRouter, Depends, Query, status

from classgrid.api.deps import get_scheduler, require_roles
from classgrid.core.security import Role
from classgrid.schemas.calendar import CalendarExport
from classgrid.schemas.conflict import ConflictReport
from classgrid.schemas.timetable import (
    EntrySummary,
    TimetableEntryCreate,
    TimetableEntryOut,
    TimetableEntryUpdate,
)
from classgrid.services.engine import SchedulingEngine

router = APIRouter()

admin_only = require_roles(Role.admin)
staff = require_roles(Role.admin, Role.teacher)


@router.post("", response_model=TimetableEntryOut, status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: TimetableEntryCreate,
    claims: dict[str, Any] = Depends(admin_only),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> TimetableEntryOut:
    return scheduler.create_entry(**payload.model_dump(), actor_id=claims["sub"])


@router.get("/check-conflict", response_model=ConflictReport)
def check_conflict(
    batch_id: int = Query(alias="batchId", ge=1),
    day_of_week: str = Query(alias="dayOfWeek"),
    start_time: str = Query(alias="startTime"),
    end_time: str = Query(alias="endTime"),
    teacher_id: int | None = Query(default=None, alias="teacherId", ge=1),
    claims: dict[str, Any] = Depends(admin_only),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> ConflictReport:
    return scheduler.check_conflict(batch_id, day_of_week, start_time, end_time, teacher_id=teacher_id)


@router.get("/weekly", response_model=dict[str, list[EntrySummary]])
def weekly_grouping(
    batch_id: int | None = Query(default=None, alias="batchId", ge=1),
    teacher_id: int | None = Query(default=None, alias="teacherId", ge=1),
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> dict[str, list[EntrySummary]]:
    grouped = scheduler.weekly_grouping(batch_id=batch_id, teacher_id=teacher_id)
    return {day.name: entries for day, entries in grouped.items()}


@router.get("/batch/{batch_id}", response_model=list[TimetableEntryOut])
def list_by_batch(
    batch_id: int,
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> list[TimetableEntryOut]:
    return scheduler.list_by_batch(batch_id)


@router.get("/teacher/{teacher_id}", response_model=list[TimetableEntryOut])
def list_by_teacher(
    teacher_id: int,
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> list[TimetableEntryOut]:
    return scheduler.list_by_teacher(teacher_id)


@router.get("/level/{level_id}", response_model=list[TimetableEntryOut])
def list_by_level(
    level_id: int,
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> list[TimetableEntryOut]:
    return scheduler.list_by_level(level_id)


@router.get("/export/{batch_id}", response_model=CalendarExport)
def export_calendar(
    batch_id: int,
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> CalendarExport:
    return scheduler.export_calendar(batch_id)


@router.get("/{entry_id}", response_model=TimetableEntryOut)
def get_entry(
    entry_id: int,
    claims: dict[str, Any] = Depends(staff),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> TimetableEntryOut:
    return scheduler.get_entry(entry_id)


@router.put("/{entry_id}", response_model=TimetableEntryOut)
def update_entry(
    entry_id: int,
    payload: TimetableEntryUpdate,
    claims: dict[str, Any] = Depends(admin_only),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> TimetableEntryOut:
    return scheduler.update_entry(entry_id, actor_id=claims["sub"], **payload.model_dump(exclude_unset=True))


@router.delete("/{entry_id}")
def deactivate_entry(
    entry_id: int,
    claims: dict[str, Any] = Depends(admin_only),
    scheduler: SchedulingEngine = Depends(get_scheduler),
) -> dict:
    scheduler.deactivate(entry_id, actor_id=claims["sub"])
    return {"success": True}
