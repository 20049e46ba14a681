from pydantic import BaseModel, Field


class RosterBatchUpsert(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    level_id: int | None = Field(default=None, alias="levelId", ge=1)

    model_config = {"populate_by_name": True}


class RosterBatchOut(BaseModel):
    id: int
    name: str
    level_id: int | None = Field(default=None, alias="levelId")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
