"""
Bearer-token identity resolution.

Tokens are issued elsewhere; this module only decodes them into a
``Caller``.  A request without a token is an anonymous caller, which the
visibility policy treats like USER.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from blog_backend.config import settings
from blog_backend.roles import Role, effective_role

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    user_id: Optional[int] = None
    roles: frozenset = field(default_factory=frozenset)

    @property
    def role(self) -> Role:
        return effective_role(self.roles)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def anonymous(cls) -> "Caller":
        return cls()


def create_access_token(
    user_id: int,
    roles: Iterable[Role | str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a signed token.  Used by the seed script and the test suite."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user_id),
        "roles": [r.value if isinstance(r, Role) else str(r) for r in roles],
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Caller:
    """
    Turn a bearer token into a Caller.

    Raises:
        HTTPException: 401 for a bad signature, expiry or malformed claims.
    """
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise credentials_error

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise credentials_error

    raw_roles = payload.get("roles") or []
    if not isinstance(raw_roles, list):
        raise credentials_error
    roles = frozenset(r for r in (Role.parse(v) for v in raw_roles) if r is not None)
    return Caller(user_id=user_id, roles=roles)


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """Optional authentication: no header yields an anonymous caller."""
    if credentials is None:
        return Caller.anonymous()
    return decode_token(credentials.credentials)


async def require_caller(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return caller
