"""Auth API — registration, login, guest sessions.

- POST /auth/register → create an account (+ its settings row)
- POST /auth/login → email/password → JWT tokens
- POST /auth/refresh → refresh token → new access token
- POST /auth/guest → anonymous guest token for a fresh guest id
- GET /auth/me → current identity
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.auth.dependencies import CurrentIdentity, get_current_user
from auratask.auth.jwt import (
    TOKEN_REFRESH,
    TokenError,
    create_access_token,
    create_guest_token,
    create_refresh_token,
    verify_token,
)
from auratask.auth.password import hash_password, verify_password
from auratask.config import settings
from auratask.db.engine import get_db
from auratask.db.models import User, UserSettings
from auratask.events.store import EventStore
from auratask.events.types import USER_REGISTERED

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, email: str) -> str:
        return email.strip().lower()


class RegisterRequest(LoginRequest):
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class GuestTokenResponse(BaseModel):
    guest_id: uuid.UUID
    access_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


def _token_pair(user_id: str) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id),
        refresh_token=create_refresh_token(user_id),
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new account."""
    q = select(User).where(User.email == body.email)
    result = await db.execute(q)
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    await db.flush()

    is_admin = settings.is_admin_email(body.email)
    db.add(UserSettings(user_id=user.id, is_admin=is_admin))
    await EventStore(db).append(
        stream_id=f"user:{user.id}",
        event_type=USER_REGISTERED,
        data={"is_admin": is_admin},
        actor_id=str(user.id),
    )

    await db.commit()
    await db.refresh(user)
    return user


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT tokens."""
    q = select(User).where(User.email == body.email)
    result = await db.execute(q)
    user = result.scalars().first()

    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return _token_pair(str(user.id))


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest):
    """Exchange a refresh token for a new access token."""
    try:
        payload = verify_token(body.refresh_token)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))

    if payload.get("type") != TOKEN_REFRESH:
        raise HTTPException(status_code=401, detail="Not a refresh token")

    return _token_pair(payload["sub"])


# ─── Guest ──────────────────────────────────────────────


@router.post("/guest", response_model=GuestTokenResponse, status_code=201)
async def start_guest_session():
    """Issue a token for a brand-new guest id. Nothing is persisted."""
    guest_id = uuid.uuid4()
    return GuestTokenResponse(
        guest_id=guest_id,
        access_token=create_guest_token(str(guest_id)),
    )


# ─── Current identity ───────────────────────────────────


@router.get("/me")
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current identity's info."""
    if identity.is_guest:
        return {"type": "guest", "id": identity.user_id}

    user = await db.get(User, uuid.UUID(identity.user_id))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "type": "user",
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
    }
