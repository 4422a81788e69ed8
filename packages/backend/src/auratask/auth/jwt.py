"""JWT issue and verification.

Three token kinds, told apart by the "type" claim:
- access: a signed-in account calling the API (minutes)
- refresh: exchanged at /auth/refresh for a new pair (days)
- guest: an anonymous guest session calling the API (days)

A guest token's subject is the guest id that owns the guest's rows
until they are migrated into an account.
"""

from datetime import datetime, timedelta, timezone

import jwt

from auratask.config import settings

TOKEN_ACCESS = "access"
TOKEN_REFRESH = "refresh"
TOKEN_GUEST = "guest"


class TokenError(Exception):
    """Raised when a token is expired, forged or malformed."""


def _issue(subject: str, token_type: str, lifetime: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": subject,
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str) -> str:
    return _issue(
        user_id,
        TOKEN_ACCESS,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: str) -> str:
    return _issue(
        user_id, TOKEN_REFRESH, timedelta(days=settings.refresh_token_expire_days)
    )


def create_guest_token(guest_id: str) -> str:
    return _issue(
        guest_id, TOKEN_GUEST, timedelta(days=settings.guest_token_expire_days)
    )


def verify_token(token: str) -> dict:
    """Decode a token and return its claims. Raises TokenError."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "type", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}") from e
