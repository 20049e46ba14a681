"""Seed a demo roster and weekly timetable, then print tokens for trying the API.

Run:
  PYTHONPATH=backend python scripts/seed_demo_timetable.py
"""

from __future__ import annotations

import os

from classgrid.core.config import get_settings
from classgrid.core.exceptions import SchedulingConflictError
from classgrid.core.security import Role, create_access_token
from classgrid.db.bootstrap import ensure_runtime_schema
from classgrid.db.session import SessionLocal, engine
from classgrid.services.engine import SchedulingEngine
from classgrid.services.occurrence import resolve_timezone
from classgrid.services.roster import SqlRoster
from classgrid.services.timetable_store import TimetableStore

ACTOR_ID = os.getenv("DEMO_ACTOR_ID", "demo-seed")

DEMO_BATCHES = {
    1: ("Beginners Morning", 1),
    2: ("Beginners Evening", 1),
    3: ("Intermediate Weekend", 2),
}

DEMO_ENTRIES = [
    {"batch_id": 1, "teacher_id": 10, "day_of_week": "MONDAY", "start_time": "09:00", "end_time": "10:30", "room": "A1", "subject": "Grammar"},
    {"batch_id": 1, "teacher_id": 11, "day_of_week": "WEDNESDAY", "start_time": "09:00", "end_time": "10:30", "room": "A1", "subject": "Conversation"},
    {"batch_id": 2, "teacher_id": 10, "day_of_week": "MONDAY", "start_time": "18:00", "end_time": "19:30", "room": "A2", "subject": "Grammar"},
    {"batch_id": 2, "teacher_id": None, "day_of_week": "THURSDAY", "start_time": "18:00", "end_time": "19:30", "room": "A2", "subject": "Reading"},
    {"batch_id": 3, "teacher_id": 11, "day_of_week": "SATURDAY", "start_time": "10:00", "end_time": "13:00", "room": "B1", "subject": "Workshop"},
]


def main() -> None:
    settings = get_settings()
    ensure_runtime_schema(engine)

    roster = SqlRoster(SessionLocal)
    for batch_id, (name, level_id) in DEMO_BATCHES.items():
        roster.upsert_batch(batch_id, name=name, level_id=level_id)

    scheduler = SchedulingEngine(
        TimetableStore(SessionLocal, roster=roster),
        roster,
        calendar_timezone=resolve_timezone(settings.calendar_timezone),
    )
    created = 0
    for item in DEMO_ENTRIES:
        try:
            scheduler.create_entry(**item, actor_id=ACTOR_ID)
            created += 1
        except SchedulingConflictError as exc:
            # Re-running the seed hits the entries created last time.
            print(f"Skipped batch {item['batch_id']} {item['day_of_week']} {item['start_time']}: {exc.message}")

    print(f"Seeded {len(DEMO_BATCHES)} batch(es) and {created} timetable entr(y/ies).")
    print(f"Admin token:   {create_access_token(ACTOR_ID, Role.admin)}")
    print(f"Teacher token: {create_access_token('demo-teacher', Role.teacher)}")


if __name__ == "__main__":
    main()
