"""FastAPI dependencies for authentication and shared application state."""

from dataclasses import dataclass, field
from typing import Optional

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError

from .cache import QueryCache
from .config import settings
from .exceptions import AuthenticationError, AuthorizationError
from .locks import KeyedLock

ADMIN_ROLE = "ADMIN"


@dataclass(frozen=True)
class CurrentUser:
    """Identity extracted from a validated bearer token."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """
    Authentication dependency that validates Bearer tokens.

    Tokens are issued elsewhere; this only verifies the HS256 signature and
    expiry and reads the subject and roles.

    Raises:
        AuthenticationError: If the token is missing or invalid
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    role = payload.get("role")
    roles = payload.get("roles") or ([role] if role else [])

    return CurrentUser(
        user_id=str(user_id),
        email=payload.get("email"),
        name=payload.get("name"),
        roles=tuple(r.upper() for r in roles),
    )


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Authorization dependency for admin-only endpoints."""
    if not user.is_admin:
        raise AuthorizationError(required_permissions=[ADMIN_ROLE])
    return user


def get_cache(request: Request) -> QueryCache:
    """The query cache created with the application."""
    return request.app.state.cache


def get_booking_locks(request: Request) -> KeyedLock:
    """Per-resource locks shared by every booking request in this process."""
    return request.app.state.booking_locks


def get_worker_manager(request: Request):
    """Background workers started and stopped with the application."""
    return request.app.state.worker_manager


# Reusable dependency markers
RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
CacheDependency = Depends(get_cache)
BookingLocksDependency = Depends(get_booking_locks)
WorkerManagerDependency = Depends(get_worker_manager)
