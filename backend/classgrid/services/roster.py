from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from classgrid.db.errors import translate_store_errors
from classgrid.models.roster_batch import RosterBatch


class RosterLookup(Protocol):
    def batch_ids_for_level(self, level_id: int) -> list[int]: ...

    def batch_name(self, batch_id: int) -> str | None: ...


class StaticRoster:
    def __init__(self, batches: Mapping[int, tuple[str, int | None]] | None = None) -> None:
        self._batches = dict(batches or {})

    def batch_ids_for_level(self, level_id: int) -> list[int]:
        return sorted(batch_id for batch_id, (_, level) in self._batches.items() if level == level_id)

    def batch_name(self, batch_id: int) -> str | None:
        item = self._batches.get(batch_id)
        return item[0] if item else None


class SqlRoster:
    """Roster lookups backed by the local ``roster_batches`` mirror."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def batch_ids_for_level(self, level_id: int) -> list[int]:
        with translate_store_errors("roster level lookup"), self._session_factory() as session:
            stmt = select(RosterBatch.id).where(RosterBatch.level_id == level_id).order_by(RosterBatch.id)
            return list(session.scalars(stmt))

    def batch_name(self, batch_id: int) -> str | None:
        with translate_store_errors("roster batch lookup"), self._session_factory() as session:
            batch = session.get(RosterBatch, batch_id)
            return batch.name if batch is not None else None

    def upsert_batch(self, batch_id: int, *, name: str, level_id: int | None) -> RosterBatch:
        with translate_store_errors("roster upsert"):
            with self._session_factory(expire_on_commit=False) as session, session.begin():
                batch = session.get(RosterBatch, batch_id)
                if batch is None:
                    batch = RosterBatch(id=batch_id, name=name, level_id=level_id)
                    session.add(batch)
                else:
                    batch.name = name
                    batch.level_id = level_id
                session.flush()
                session.refresh(batch)
            return batch
