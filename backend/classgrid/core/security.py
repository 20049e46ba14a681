from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import jwt

from classgrid.core.config import get_settings


class Role(str, Enum):
    admin = "admin"
    teacher = "teacher"


def create_access_token(subject: str, role: Role | str, expires_minutes: int | None = None) -> str:
    settings = get_settings()
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    claims: dict[str, Any] = {
        "sub": subject,
        "role": role.value if isinstance(role, Role) else role,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
