from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine

import classgrid.models  # noqa: F401
from classgrid.db.base import Base

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "timetable_entries": {
        "id",
        "batch_id",
        "teacher_id",
        "day_of_week",
        "start_minute",
        "end_minute",
        "is_active",
    },
    "roster_batches": {"id", "name", "level_id"},
    "activity_logs": {"id", "action", "entity_type", "entity_id"},
}


def find_missing_schema(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    for table_name, columns in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing_tables.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(columns - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_runtime_schema(bind: Engine) -> None:
    with bind.begin() as connection:
        missing_tables, missing_columns = find_missing_schema(connection)
        if missing_columns:
            logger.warning("Existing tables are missing columns, run migrations: %s", missing_columns)
        if not missing_tables:
            return
        logger.info("Creating missing tables: %s", ", ".join(missing_tables))
        Base.metadata.create_all(bind=connection)
