from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.errors import ApiError, Forbidden
from app.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_TEAM_LEADER = "team_leader"
ROLE_USER = "user"
REVIEWER_ROLES = frozenset({ROLE_ADMIN, ROLE_TEAM_LEADER})


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(
    *,
    user_id: int,
    role: str = ROLE_USER,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a token the way the identity service does; used by tooling and tests."""
    settings = get_settings()
    now = _utcnow()
    exp = now + (expires_delta or timedelta(minutes=settings.access_token_minutes))
    claims = {
        "sub": str(user_id),
        "role": role,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm="HS256")


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")
    return payload


def actor_from_claims(claims: dict[str, Any]) -> Actor:
    subject = claims.get("sub")
    try:
        user_id = int(str(subject))
    except (TypeError, ValueError) as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.") from exc
    role = str(claims.get("role") or ROLE_USER)
    return Actor(user_id=user_id, role=role)


def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    actor = actor_from_claims(decode_token(credentials.credentials))
    request.state.actor = actor.role
    request.state.actor_id = str(actor.user_id)
    return actor


def require_role(*roles: str) -> Callable[..., Actor]:
    allowed = frozenset(roles)

    def _dependency(actor: Actor = Depends(require_user)) -> Actor:
        if actor.role not in allowed:
            raise Forbidden()
        return actor

    return _dependency


require_reviewer = require_role(*REVIEWER_ROLES)
