from typing import Literal

from pydantic import BaseModel, Field

from classgrid.schemas.timetable import TimetableEntryOut

ConflictScope = Literal["batch", "teacher"]


class ConflictingEntry(TimetableEntryOut):
    scopes: list[ConflictScope] = Field(default_factory=list)


class ConflictReport(BaseModel):
    has_conflict: bool = Field(alias="hasConflict")
    conflicts: list[ConflictingEntry] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @property
    def conflicting_entries(self) -> list[ConflictingEntry]:
        return self.conflicts

    def entries_for(self, scope: ConflictScope) -> list[ConflictingEntry]:
        return [entry for entry in self.conflicts if scope in entry.scopes]
