from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Union
from uuid import UUID

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.hospital_api.config import settings
from src.hospital_api.domain.models.user import User, UserRole
from src.hospital_api.errors import Forbidden, NotFound, Unauthorized
from src.hospital_api.infra.db.bootstrap import Repositories, get_repositories

JWT_ALGORITHM = "HS256"
TOKEN_COOKIE_NAME = "token"

# Bearer token is expected in the Authorization header; the "token" cookie is
# accepted as a fallback for browser clients.
_bearer_scheme = HTTPBearer(auto_error=False)


def _secret() -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return settings.jwt_secret


def create_access_token(user: User, *, now: Optional[datetime] = None) -> str:
    """Sign a token carrying the user's id and role."""

    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "id": str(user.id),
        "role": user.role.value,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry, returning the token claims.

    All failures surface as ``Unauthorized``; the specific cause is kept in
    ``reason`` for server-side logging only.
    """

    try:
        return jwt.decode(
            token,
            _secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "id"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized(reason="expired token") from None
    except jwt.InvalidSignatureError:
        raise Unauthorized(reason="bad signature") from None
    except jwt.InvalidTokenError as exc:
        raise Unauthorized(reason=f"malformed token: {exc}") from None


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE_NAME) or None


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(_bearer_scheme),
    repositories: Repositories = Depends(get_repositories),
) -> User:
    """Resolve the caller from their bearer token ("protect").

    The resolved user is also attached to ``request.state.user``.
    """

    token = extract_token(request, credentials)
    if not token:
        raise Unauthorized(reason="no token")

    claims = decode_access_token(token)
    try:
        user = repositories.users.find_by_id(claims["id"])
    except NotFound:
        raise Unauthorized(reason="user no longer exists") from None

    request.state.user = user
    return user


protect = get_current_user


def authorize(*roles: Union[UserRole, str]) -> Callable[..., User]:
    """Build a dependency admitting only users whose role is in ``roles``."""

    allowed = {UserRole(role) for role in roles}

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise Forbidden(f"User role {user.role.value} is not authorized to access this route")
        return user

    return _dependency


def ensure_owner_or_admin(user: User, owner_id: UUID, *, resource: str = "resource") -> None:
    """Raise Forbidden unless the user is an admin or owns the resource."""

    if user.role == UserRole.ADMIN:
        return
    if user.id != owner_id:
        raise Forbidden(f"User {user.id} is not authorized to access this {resource}")
