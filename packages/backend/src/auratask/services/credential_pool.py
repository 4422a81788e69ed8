"""Shared credential pool — least-used-first selection over pooled keys.

Principals without a personal key borrow one of a small set of
administrator-supplied keys. Each reservation picks the active key with
the lowest usage_count and bumps it by one, spreading quota use evenly.

Concurrency: the pick and the bump run in one transaction. The pick
takes a row lock (SELECT ... FOR UPDATE) and the bump is a database-side
`usage_count = usage_count + 1`, so concurrent reservations can land on
the same key but never lose an increment. No application-level lock is
involved, so this holds across any number of service instances.

A reservation is spent once returned: if the downstream AI call fails
the count stays bumped, because the attempt consumed quota anyway.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.db.models import PoolKey, utcnow
from auratask.events.store import EventStore
from auratask.events.types import (
    POOL_KEY_ADDED,
    POOL_KEY_DELETED,
    POOL_KEY_TOGGLED,
    POOL_KEY_USAGE_RESET,
)

logger = structlog.get_logger()


class PoolKeyNotFoundError(Exception):
    """Raised when a pool key id does not exist."""


class DuplicatePoolKeyError(Exception):
    """Raised when adding a key value that is already pooled."""


@dataclass(frozen=True)
class ReservedKey:
    """A pooled key handed out by one reservation.

    usage_before is the key's count at selection time, i.e. before this
    reservation's increment.
    """

    pool_key_id: int
    api_key: str
    usage_before: int


class CredentialPool:
    """The administrator-managed fallback key pool."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    # ─── Reservation ─────────────────────────────────────

    async def select_and_reserve(self) -> Optional[ReservedKey]:
        """Pick the least-used active key and count one use against it.

        Returns None when no active key exists. Storage errors never
        escape: a failed pick reads as an empty pool, and a failed
        increment still hands out the already-selected key.
        """
        try:
            key = await self._pick_least_used()
        except SQLAlchemyError as e:
            logger.warning("credential_pool.select_failed", error=str(e))
            await self.db.rollback()
            return None

        if key is None:
            await self.db.rollback()
            logger.info("credential_pool.empty")
            return None

        # Snapshot before the write; a rollback below expires the instance.
        reserved = ReservedKey(
            pool_key_id=key.id,
            api_key=key.api_key,
            usage_before=key.usage_count,
        )

        try:
            await self.db.execute(
                update(PoolKey)
                .where(PoolKey.id == reserved.pool_key_id)
                .values(usage_count=PoolKey.usage_count + 1, last_used_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "credential_pool.increment_failed",
                pool_key_id=reserved.pool_key_id,
                error=str(e),
            )
            await self.db.rollback()
            return reserved

        logger.debug(
            "credential_pool.reserved",
            pool_key_id=reserved.pool_key_id,
            usage_count=reserved.usage_before + 1,
        )
        return reserved

    async def _pick_least_used(self) -> Optional[PoolKey]:
        """Lock and return the active key with the smallest usage_count.

        Rows locked by in-flight reservations are skipped first so
        concurrent callers fan out over the pool. If every active key is
        locked, wait for one instead of reporting an empty pool.
        """
        query = (
            select(PoolKey)
            .where(PoolKey.is_active.is_(True))
            .order_by(PoolKey.usage_count, PoolKey.id)
            .limit(1)
        )
        result = await self.db.execute(
            query.with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        key = result.scalars().first()
        if key is not None:
            return key

        result = await self.db.execute(
            query.with_for_update().execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ─── Administration ──────────────────────────────────

    async def list_keys(self) -> list[PoolKey]:
        result = await self.db.execute(
            select(PoolKey)
            .order_by(PoolKey.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_key(self, key_id: int) -> Optional[PoolKey]:
        return await self.db.get(PoolKey, key_id, populate_existing=True)

    async def add_key(
        self, api_key: str, label: str = "", actor_id: Optional[str] = None
    ) -> PoolKey:
        """Add a key to the pool: active, usage_count 0.

        Raises DuplicatePoolKeyError if the key value is already pooled.
        """
        api_key = api_key.strip()
        if not api_key:
            raise ValueError("API key must not be empty")

        existing = await self.db.execute(
            select(PoolKey.id).where(PoolKey.api_key == api_key)
        )
        if existing.scalar() is not None:
            raise DuplicatePoolKeyError("API key already exists")

        key = PoolKey(api_key=api_key, label=label, is_active=True, usage_count=0)
        self.db.add(key)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same value
            await self.db.rollback()
            raise DuplicatePoolKeyError("API key already exists")

        await self.events.append(
            stream_id=f"pool_key:{key.id}",
            event_type=POOL_KEY_ADDED,
            data={"label": label},
            actor_id=actor_id,
        )
        await self.db.commit()
        await self.db.refresh(key)
        logger.info("credential_pool.key_added", pool_key_id=key.id)
        return key

    async def toggle_key(self, key_id: int, actor_id: Optional[str] = None) -> PoolKey:
        """Flip a key between active and inactive."""
        key = await self.get_key(key_id)
        if not key:
            raise PoolKeyNotFoundError(f"Pool key {key_id} not found")

        key.is_active = not key.is_active
        await self.events.append(
            stream_id=f"pool_key:{key_id}",
            event_type=POOL_KEY_TOGGLED,
            data={"is_active": key.is_active},
            actor_id=actor_id,
        )
        await self.db.commit()
        logger.info(
            "credential_pool.key_toggled", pool_key_id=key_id, is_active=key.is_active
        )
        return key

    async def delete_key(self, key_id: int, actor_id: Optional[str] = None) -> None:
        key = await self.get_key(key_id)
        if not key:
            raise PoolKeyNotFoundError(f"Pool key {key_id} not found")

        await self.db.delete(key)
        await self.events.append(
            stream_id=f"pool_key:{key_id}",
            event_type=POOL_KEY_DELETED,
            data={"usage_count": key.usage_count},
            actor_id=actor_id,
        )
        await self.db.commit()
        logger.info("credential_pool.key_deleted", pool_key_id=key_id)

    async def reset_usage(self, key_id: int, actor_id: Optional[str] = None) -> PoolKey:
        """Zero a key's usage_count — the only way a count goes down."""
        key = await self.get_key(key_id)
        if not key:
            raise PoolKeyNotFoundError(f"Pool key {key_id} not found")

        previous = key.usage_count
        key.usage_count = 0
        await self.events.append(
            stream_id=f"pool_key:{key_id}",
            event_type=POOL_KEY_USAGE_RESET,
            data={"previous_usage_count": previous},
            actor_id=actor_id,
        )
        await self.db.commit()
        logger.info(
            "credential_pool.usage_reset", pool_key_id=key_id, previous=previous
        )
        return key
