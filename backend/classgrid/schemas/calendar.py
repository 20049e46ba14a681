from typing import Literal

from pydantic import BaseModel, Field


class CalendarEvent(BaseModel):
    uid: str
    summary: str
    dtstart: str
    dtend: str
    rrule: str
    location: str = ""
    description: str = ""


class CalendarExport(BaseModel):
    format: Literal["ical"] = "ical"
    batch_id: int = Field(alias="batchId")
    timezone: str
    events: list[CalendarEvent] = Field(default_factory=list)

    model_config = {"populate_by_name": True}
