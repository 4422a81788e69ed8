"""Pydantic schemas for guest data migration."""

import uuid
from typing import Optional

from pydantic import BaseModel


class MigrationRequest(BaseModel):
    guest_user_id: Optional[uuid.UUID] = None
    new_user_id: Optional[uuid.UUID] = None


class MigrationRead(BaseModel):
    message: str
    guest_user_id: uuid.UUID
    new_user_id: uuid.UUID
    stats: dict[str, int]
    discarded: dict[str, int] = {}
