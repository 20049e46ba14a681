"""Mutual exclusion for conflict-gated writes.

A write holds one lock per scope key, ``("batch", batch_id, day)`` and, when a
teacher is assigned, ``("teacher", teacher_id, day)``, from the conflict query
until commit. Keys are always acquired in sorted order.
"""
from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import text
from sqlalchemy.orm import Session

ScopeKey = tuple[str, int, int]


def scope_keys(batch_id: int, teacher_id: int | None, day: int) -> list[ScopeKey]:
    keys: list[ScopeKey] = [("batch", batch_id, int(day))]
    if teacher_id is not None:
        keys.append(("teacher", teacher_id, int(day)))
    return sorted(keys)


class ScopeLockRegistry:
    """Process-local locks keyed by scope.

    Locks are kept for every key seen, so the registry grows with the number of
    batch and teacher ids times seven days and no further.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[ScopeKey, Lock] = {}

    def _lock_for(self, key: ScopeKey) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[ScopeKey]) -> Iterator[None]:
        acquired: list[Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


# Shared by every store in the process that is not given its own registry.
DEFAULT_SCOPE_LOCKS = ScopeLockRegistry()


def advisory_lock_id(key: ScopeKey) -> int:
    kind, identifier, day = key
    digest = hashlib.sha256(f"classgrid:{kind}:{identifier}:{day}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def acquire_advisory_locks(session: Session, keys: Iterable[ScopeKey]) -> None:
    """Take transaction-scoped advisory locks so separate worker processes serialise too."""
    if session.get_bind().dialect.name != "postgresql":
        return
    for key in sorted(set(keys)):
        session.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": advisory_lock_id(key)})
