"""
Authentication and authorization dependencies for RecruitDesk.

Identity comes from an external identity provider: callers present a
bearer JWT whose ``sub`` is the user's stable id and whose ``email`` claim
carries the verified address. The user row may not exist yet (signup flows
create it), so identity and user resolution are separate dependencies.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.models.role import Role
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed identity token (development and tests)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={"verify_aud": settings.jwt_audience is not None},
    )


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class Identity:
    """Verified identity-provider claims for the current request."""

    def __init__(self, user_id: uuid.UUID, email: str):
        self.user_id = user_id
        self.email = email


async def get_identity(
    authorization: Optional[str] = Depends(authorization_header),
) -> Identity:
    """Resolve the bearer token into an Identity. 401 on anything invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = authorization[7:].strip()
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Token subject is not a valid user id")

    email = payload.get("email")
    if not email:
        raise HTTPException(status_code=401, detail="Token has no email claim")

    return Identity(user_id=user_id, email=email)


async def get_current_user(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> User:
    """The stored User for the caller. 403 until signup has created the row."""
    user = await session.get(User, identity.user_id)
    if not user:
        log.info("auth.user_record_missing", user_id=str(identity.user_id))
        raise HTTPException(status_code=403, detail="User has not completed team setup")
    return user


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_admin(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Requires master admin or a local admin role.

    Same-team checks happen in the services, which know the target team.
    """
    if user.is_master_admin:
        return user
    if user.role_id is not None:
        role = await session.get(Role, user.role_id)
        if role is not None and role.is_admin:
            return user
    raise HTTPException(status_code=403, detail="Administrator access required")
