"""Settings API — the signed-in user's own settings.

- GET /settings/me → settings (personal key masked)
- PATCH /settings/me → update personal key and/or AI weights
- DELETE /settings/me/api-key → remove the personal key
- POST /settings/me/api-key/test → check a candidate key with the provider

Guests have no settings; these routes require a signed-in account.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai import CompletionProvider
from auratask.api.ai import get_completion_provider
from auratask.auth.dependencies import CurrentIdentity, require_authenticated
from auratask.db.engine import get_db
from auratask.db.models import UserSettings
from auratask.schemas.credential import (
    ApiKeyTest,
    ApiKeyTestRead,
    SettingsRead,
    SettingsUpdate,
    mask_key,
)
from auratask.services.settings_service import InvalidApiKeyError, SettingsService

router = APIRouter(prefix="/settings")


def _settings_svc(db: AsyncSession = Depends(get_db)) -> SettingsService:
    return SettingsService(db)


def _read(user_id: str, row: UserSettings | None) -> dict:
    if row is None:
        return {"user_id": user_id, "has_personal_key": False}
    return {
        "user_id": user_id,
        "has_personal_key": bool(row.gemini_api_key),
        "masked_key": mask_key(row.gemini_api_key),
        "ai_speed_weight": row.ai_speed_weight,
        "ai_importance_weight": row.ai_importance_weight,
        "is_admin": row.is_admin,
    }


@router.get("/me", response_model=SettingsRead)
async def get_my_settings(
    identity: CurrentIdentity = Depends(require_authenticated),
    svc: SettingsService = Depends(_settings_svc),
):
    row = await svc.get_settings(uuid.UUID(identity.user_id))
    return _read(identity.user_id, row)


@router.patch("/me", response_model=SettingsRead)
async def update_my_settings(
    body: SettingsUpdate,
    identity: CurrentIdentity = Depends(require_authenticated),
    svc: SettingsService = Depends(_settings_svc),
):
    """Update only the fields present in the body."""
    kwargs = {
        "ai_speed_weight": body.ai_speed_weight,
        "ai_importance_weight": body.ai_importance_weight,
    }
    if "gemini_api_key" in body.model_fields_set:
        kwargs["gemini_api_key"] = body.gemini_api_key

    row = await svc.update_settings(uuid.UUID(identity.user_id), **kwargs)
    return _read(identity.user_id, row)


@router.delete("/me/api-key", response_model=SettingsRead)
async def clear_my_api_key(
    identity: CurrentIdentity = Depends(require_authenticated),
    svc: SettingsService = Depends(_settings_svc),
):
    row = await svc.update_settings(uuid.UUID(identity.user_id), gemini_api_key=None)
    return _read(identity.user_id, row)


@router.post("/me/api-key/test", response_model=ApiKeyTestRead)
async def check_my_api_key(
    body: ApiKeyTest,
    identity: CurrentIdentity = Depends(require_authenticated),
    svc: SettingsService = Depends(_settings_svc),
    provider: CompletionProvider = Depends(get_completion_provider),
):
    """Try the key against the provider before the client saves it."""
    try:
        await svc.check_api_key(provider, body.api_key)
    except InvalidApiKeyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "provider": provider.name}
