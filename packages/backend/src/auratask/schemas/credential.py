"""Pydantic schemas for pooled keys and personal settings.

Key material goes in, never comes out: read models expose a masked
form and a has_personal_key flag only.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field


def mask_key(key: Optional[str]) -> Optional[str]:
    """'AIzaSyD...xyz1' style mask: first 4 and last 4 characters."""
    if not key:
        return None
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"


# ─── Pool keys ──────────────────────────────────────────

class PoolKeyCreate(BaseModel):
    api_key: str = Field(..., min_length=1, max_length=500)
    label: str = Field(default="", max_length=100)


class PoolKeyRead(BaseModel):
    id: int
    label: str
    api_key: str = Field(exclude=True)
    is_active: bool
    usage_count: int
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def masked_key(self) -> Optional[str]:
        return mask_key(self.api_key)


# ─── Personal settings ──────────────────────────────────

class SettingsUpdate(BaseModel):
    """Partial update; send gemini_api_key: null to remove the personal key."""
    gemini_api_key: Optional[str] = Field(None, max_length=500)
    ai_speed_weight: Optional[float] = Field(None, gt=0, le=5)
    ai_importance_weight: Optional[float] = Field(None, gt=0, le=5)


class ApiKeyTest(BaseModel):
    api_key: str = Field("", max_length=500)


class ApiKeyTestRead(BaseModel):
    success: bool
    provider: str


class SettingsRead(BaseModel):
    user_id: str
    has_personal_key: bool
    masked_key: Optional[str] = None
    ai_speed_weight: float = 1.0
    ai_importance_weight: float = 1.0
    is_admin: bool = False
