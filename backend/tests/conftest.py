from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import classgrid.models  # noqa: F401
from classgrid.api.deps import get_session_factory
from classgrid.core.security import Role, create_access_token
from classgrid.db.base import Base
from classgrid.main import app
from classgrid.services.engine import SchedulingEngine
from classgrid.services.roster import StaticRoster
from classgrid.services.timetable_store import TimetableStore

# Wednesday 2026-10-21 08:00 UTC
FIXED_NOW = datetime(2026, 10, 21, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def roster():
    return StaticRoster(
        {
            7: ("Grade 7 Morning", 1),
            9: ("Grade 9 Evening", 2),
            11: ("Grade 7 Evening", 1),
        }
    )


@pytest.fixture()
def store(session_factory, roster):
    return TimetableStore(session_factory, roster=roster)


@pytest.fixture()
def scheduler(store, roster):
    return SchedulingEngine(store, roster, clock=lambda: FIXED_NOW)


@pytest.fixture()
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin-1', Role.admin)}"}


@pytest.fixture()
def teacher_headers():
    return {"Authorization": f"Bearer {create_access_token('teacher-3', Role.teacher)}"}
