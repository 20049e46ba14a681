from collections.abc import Callable, Iterable
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import sessionmaker

from classgrid.core.config import Settings, get_settings
from classgrid.core.security import Role, decode_token
from classgrid.db.session import SessionLocal
from classgrid.services.engine import SchedulingEngine
from classgrid.services.occurrence import resolve_timezone
from classgrid.services.roster import SqlRoster
from classgrid.services.timetable_store import TimetableStore

security = HTTPBearer()


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_roster(session_factory: sessionmaker = Depends(get_session_factory)) -> SqlRoster:
    return SqlRoster(session_factory)


def get_scheduler(
    request: Request,
    session_factory: sessionmaker = Depends(get_session_factory),
    roster: SqlRoster = Depends(get_roster),
    settings: Settings = Depends(get_settings),
) -> SchedulingEngine:
    store = TimetableStore(session_factory, roster=roster, locks=request.app.state.scope_locks)
    return SchedulingEngine(store, roster, calendar_timezone=resolve_timezone(settings.calendar_timezone))


def get_current_claims(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict[str, Any]:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc
    if not claims.get("sub") or claims.get("role") not in {role.value for role in Role}:
        raise credentials_exception
    return claims


def require_roles(*roles: Role) -> Callable[[dict[str, Any]], dict[str, Any]]:
    allowed_roles: Iterable[str] = {role.value for role in roles}

    def role_checker(claims: dict[str, Any] = Depends(get_current_claims)) -> dict[str, Any]:
        if claims["role"] not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return claims

    return role_checker
