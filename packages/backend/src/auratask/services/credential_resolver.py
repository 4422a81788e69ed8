"""Credential resolver — which API key does this principal's request use?

Policy, re-evaluated on every call (nothing is cached):
1. The principal's own key from their settings, if non-empty. A personal
   key always wins and never touches the shared pool.
2. Otherwise one reservation from the CredentialPool.
3. Otherwise None — the caller degrades to its default output.

Reading the personal key favours availability: a storage error there is
logged and treated as "no personal key", costing at most one pooled use.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.db.models import UserSettings
from auratask.services.credential_pool import CredentialPool

logger = structlog.get_logger()

SOURCE_PERSONAL = "personal"
SOURCE_POOL = "pool"


@dataclass(frozen=True)
class Credential:
    """An API key ready to hand to an AI provider."""

    api_key: str
    source: str  # "personal" or "pool"
    pool_key_id: Optional[int] = None

    def __repr__(self) -> str:
        # Key material stays out of logs and tracebacks
        return f"Credential(source={self.source!r}, pool_key_id={self.pool_key_id!r})"


class CredentialResolver:
    """Resolves a usable credential for a principal."""

    def __init__(self, db: AsyncSession, pool: CredentialPool):
        self.db = db
        self.pool = pool

    async def resolve(self, principal_id: uuid.UUID) -> Optional[Credential]:
        """Return the principal's credential, or None when none is obtainable."""
        personal = await self._personal_key(principal_id)
        if personal:
            return Credential(api_key=personal, source=SOURCE_PERSONAL)

        reserved = await self.pool.select_and_reserve()
        if reserved is None:
            logger.info("credential.unavailable", principal_id=str(principal_id))
            return None

        return Credential(
            api_key=reserved.api_key,
            source=SOURCE_POOL,
            pool_key_id=reserved.pool_key_id,
        )

    async def _personal_key(self, principal_id: uuid.UUID) -> Optional[str]:
        try:
            result = await self.db.execute(
                select(UserSettings.gemini_api_key).where(
                    UserSettings.user_id == principal_id
                )
            )
            key = result.scalar()
        except SQLAlchemyError as e:
            logger.warning(
                "credential.personal_lookup_failed",
                principal_id=str(principal_id),
                error=str(e),
            )
            await self.db.rollback()
            return None

        if key and key.strip():
            return key.strip()
        return None
