"""
Actor resolution and role checks.

Tokens are issued by the external auth service; this module only verifies
them and turns the claims into an Actor. `create_access_token` exists for
tooling and tests that need to mint tokens with the shared secret.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from app.core.exceptions import AuthorizationError

STUDENT = "student"
LECTURER = "lecturer"
DEPARTMENT_ADMIN = "department_admin"
SUPER_ADMIN = "super_admin"

ROLES = (STUDENT, LECTURER, DEPARTMENT_ADMIN, SUPER_ADMIN)
ADMIN_ROLES = frozenset({DEPARTMENT_ADMIN, SUPER_ADMIN})

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    department_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def require_role(actor: Actor, allowed, action: str) -> None:
    """Raise AuthorizationError unless the actor holds one of `allowed` roles."""
    if actor.role not in allowed:
        raise AuthorizationError(
            f"Role '{actor.role}' may not {action}",
            required_roles=sorted(allowed),
        )


def ensure_department_scope(actor: Actor, department_id: Optional[int], action: str) -> None:
    """
    Department admins only act on records of their own department.
    Unowned records (department_id None) are open to every admin.
    """
    if actor.role != DEPARTMENT_ADMIN or department_id is None:
        return
    if department_id != actor.department_id:
        raise AuthorizationError(
            f"Department admins may only {action} within their own department",
            department_id=department_id,
        )


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_actor(token: str) -> Actor:
    settings = get_settings()
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise unauthorized

    sub = payload.get("sub")
    role = payload.get("role", STUDENT)
    if sub is None or role not in ROLES:
        raise unauthorized
    try:
        actor_id = int(sub)
    except (TypeError, ValueError):
        raise unauthorized

    department_id = payload.get("department_id")
    return Actor(id=actor_id, role=role, department_id=department_id)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    actor = decode_actor(credentials.credentials)
    structlog.contextvars.bind_contextvars(actor_id=actor.id, actor_role=actor.role)
    return actor
