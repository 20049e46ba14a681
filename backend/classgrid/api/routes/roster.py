from typing import Any

from fastapi import APIRouter, Depends

from classgrid.api.deps import get_roster, require_roles
from classgrid.core.security import Role
from classgrid.schemas.roster import RosterBatchOut, RosterBatchUpsert
from classgrid.services.roster import SqlRoster

router = APIRouter()


@router.put("/batches/{batch_id}", response_model=RosterBatchOut)
def upsert_batch(
    batch_id: int,
    payload: RosterBatchUpsert,
    claims: dict[str, Any] = Depends(require_roles(Role.admin)),
    roster: SqlRoster = Depends(get_roster),
) -> RosterBatchOut:
    return roster.upsert_batch(batch_id, name=payload.name, level_id=payload.level_id)
