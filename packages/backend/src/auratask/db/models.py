"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative mapping in SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic generates migrations by comparing these models to the database.

Key concepts:
- Owner columns (user_id) on ownable tables are opaque UUIDs with no
  foreign key to users: a guest id owns rows without having an account.
- Generic Uuid / JSON types so the same models run on PostgreSQL
  (native UUID, JSONB) and on SQLite in tests.
- server_default for DB-level defaults (work even for raw SQL inserts)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    false,
    func,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Accounts + per-owner settings
# ══════════════════════════════════════════════════════════════


class User(Base):
    """An authenticated account. Guests never get a row here."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserSettings(Base):
    """Per-owner settings — at most one row per owner.

    gemini_api_key is the owner's personal credential. When set, the
    credential resolver hands it out instead of a pooled key.
    """

    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False)
    gemini_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_speed_weight: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, server_default="1"
    )
    ai_importance_weight: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, server_default="1"
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )


# ══════════════════════════════════════════════════════════════
# Shared fallback credentials
# ══════════════════════════════════════════════════════════════


class PoolKey(Base):
    """Administrator-supplied fallback API key shared across principals.

    usage_count only ever goes up through reservations; the single
    exception is an explicit administrative reset. Inactive keys are
    never handed out.
    """

    __tablename__ = "pool_keys"
    __table_args__ = (
        Index("idx_pool_keys_active_usage", "is_active", "usage_count"),
        CheckConstraint("usage_count >= 0", name="ck_pool_keys_usage_nonneg"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_key: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    usage_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Ownable task data
# ══════════════════════════════════════════════════════════════


class TaskGroup(Base):
    __tablename__ = "task_groups"
    __table_args__ = (Index("idx_task_groups_user", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    emoji: Mapped[str] = mapped_column(String(16), nullable=False, default="📁")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (Index("idx_tags_user", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="gray")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Task(Base):
    """A user's task. Subtasks and tag links hang off the task id, so
    they follow the task when its owner changes."""

    __tablename__ = "tasks"
    __table_args__ = (Index("idx_tasks_user", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    group_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("task_groups.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_speed_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_importance_score: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    emoji: Mapped[str] = mapped_column(String(16), nullable=False, default="📝")
    completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    subtasks: Mapped[list["Subtask"]] = relationship(
        back_populates="task", cascade="all, delete-orphan"
    )


class Subtask(Base):
    __tablename__ = "subtasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    task: Mapped["Task"] = relationship(back_populates="subtasks")


class TaskTag(Base):
    __tablename__ = "task_tags"

    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )


# ══════════════════════════════════════════════════════════════
# Audit log
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Append-only audit log of administrative and migration actions.

    stream_id examples: "pool_key:3", "user:<uuid>"
    type examples: "pool_key.added", "guest.migrated"
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    meta: Mapped[dict] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )  # actor_id, request_id
    # Python attr is "meta" because "metadata" is reserved by SQLAlchemy.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
