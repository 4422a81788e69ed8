"""Settings service — the principal settings store.

Owns the per-owner settings row: the personal API key, the AI score
weights and the admin flag. The credential resolver only ever reads
these rows; every write goes through here.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai.base import CompletionError, CompletionProvider
from auratask.db.models import UserSettings
from auratask.events.store import EventStore
from auratask.events.types import SETTINGS_UPDATED

logger = structlog.get_logger()

_UNSET = object()

KEY_TEST_PROMPT = "Hello"


class InvalidApiKeyError(Exception):
    """Raised when a personal key is missing or rejected by the provider."""


class SettingsService:
    """Read and update one owner's settings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    async def get_settings(self, user_id: uuid.UUID) -> Optional[UserSettings]:
        result = await self.db.execute(
            select(UserSettings).where(UserSettings.user_id == user_id)
        )
        return result.scalars().first()

    async def get_or_create(self, user_id: uuid.UUID) -> UserSettings:
        settings = await self.get_settings(user_id)
        if settings is None:
            settings = UserSettings(user_id=user_id)
            self.db.add(settings)
            await self.db.flush()
        return settings

    async def update_settings(
        self,
        user_id: uuid.UUID,
        gemini_api_key=_UNSET,
        ai_speed_weight: Optional[float] = None,
        ai_importance_weight: Optional[float] = None,
    ) -> UserSettings:
        """Apply the provided fields. Pass gemini_api_key=None to clear the key.

        Key values are never written to the audit log, only whether
        one is set.
        """
        settings = await self.get_or_create(user_id)

        changes: dict = {}
        if gemini_api_key is not _UNSET:
            key = (gemini_api_key or "").strip() or None
            settings.gemini_api_key = key
            changes["has_personal_key"] = key is not None
        if ai_speed_weight is not None:
            settings.ai_speed_weight = ai_speed_weight
            changes["ai_speed_weight"] = ai_speed_weight
        if ai_importance_weight is not None:
            settings.ai_importance_weight = ai_importance_weight
            changes["ai_importance_weight"] = ai_importance_weight

        if changes:
            await self.events.append(
                stream_id=f"user:{user_id}",
                event_type=SETTINGS_UPDATED,
                data=changes,
                actor_id=str(user_id),
            )

        await self.db.commit()
        return settings

    async def check_api_key(self, provider: CompletionProvider, api_key: str) -> None:
        """Check a candidate personal key with one short provider call.

        Nothing is stored. Raises InvalidApiKeyError when the key is blank
        or the provider call fails.
        """
        key = (api_key or "").strip()
        if not key:
            raise InvalidApiKeyError("API key is required")
        try:
            await provider.generate(key, KEY_TEST_PROMPT)
        except CompletionError as e:
            logger.info("settings.api_key_rejected", provider=provider.name, error=str(e))
            raise InvalidApiKeyError("Invalid API key") from e
