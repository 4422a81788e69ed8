"""FastAPI auth dependencies.

Used as Depends() in route handlers to extract and validate the current
identity from the Authorization header (Bearer JWT).

Layers, each building on the previous one:
1. get_current_user_optional — None when no token is sent
2. get_current_user — 401 without a valid token (guests allowed)
3. require_authenticated — 403 for guest identities
4. require_admin — 403 unless the account's settings mark it admin
"""

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.auth.identity import Authenticated, Guest, Principal
from auratask.auth.jwt import TOKEN_ACCESS, TOKEN_GUEST, TokenError, verify_token
from auratask.db.engine import get_db
from auratask.db.models import UserSettings

_AUTH_TOKEN_TYPES = {TOKEN_ACCESS: "user", TOKEN_GUEST: "guest"}


class CurrentIdentity:
    """The identity making the request.

    identity_type is "user" for signed-in accounts and "guest" for
    anonymous sessions. Downstream code should branch on `principal`.
    """

    def __init__(self, user_id: str, identity_type: str = "user"):
        self.user_id = user_id
        self.identity_type = identity_type

    @property
    def principal(self) -> Principal:
        uid = uuid.UUID(self.user_id)
        if self.identity_type == "guest":
            return Guest(uid)
        return Authenticated(uid)

    @property
    def is_guest(self) -> bool:
        return self.identity_type == "guest"


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        return _authenticate_jwt(authorization[7:])
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_authenticated(
    identity: CurrentIdentity = Depends(get_current_user),
) -> CurrentIdentity:
    """Reject guest sessions."""
    if identity.is_guest:
        raise HTTPException(status_code=403, detail="Sign in required")
    return identity


async def require_admin(
    identity: CurrentIdentity = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> CurrentIdentity:
    """Reject anyone whose settings row isn't flagged is_admin."""
    result = await db.execute(
        select(UserSettings.is_admin).where(
            UserSettings.user_id == uuid.UUID(identity.user_id)
        )
    )
    if not result.scalar():
        raise HTTPException(status_code=403, detail="Forbidden")
    return identity


def _authenticate_jwt(token: str) -> CurrentIdentity:
    """Authenticate via JWT token."""
    try:
        payload = verify_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity_type = _AUTH_TOKEN_TYPES.get(payload.get("type"))
    if identity_type is None:
        raise HTTPException(
            status_code=401,
            detail="Token cannot be used for API access",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(user_id=payload["sub"], identity_type=identity_type)
