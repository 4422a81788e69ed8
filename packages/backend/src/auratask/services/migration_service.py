"""Guest migration — hand a guest session's data to the account it became.

A guest works anonymously under a random id. After signing in, the client
asks to move everything owned by that guest id to the new account. The
caller must *be* the receiving account, otherwise anyone could push
guest data into a victim's account (or pull it into their own). The
source id must not belong to a registered account either: guests never
get a users row, so a source that has one is another person's account.

Missing ids, and a guest id equal to the target, are bad requests. The
second case is rejected rather than treated as a no-op, because a
session cannot be both the guest and the account it became.

The transfer is one transaction over every table in the ownable-entity
registry: each row's owner is rewritten from the guest id to the account
id in place. Either all of it lands or none of it does. Running it again
for the same guest finds nothing left and succeeds as a no-op.

Nothing here retries; on MigrationFailedError the guest's data is intact
and the client may simply ask again.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.auth.identity import Authenticated, Principal
from auratask.db.models import User
from auratask.events.store import EventStore
from auratask.events.types import GUEST_MIGRATED
from auratask.services.ownable import OwnableEntity, OwnableRegistry, default_registry

logger = structlog.get_logger()


class MigrationUnauthorizedError(Exception):
    """Raised when the caller is not the account receiving the data."""


class MigrationBadRequestError(Exception):
    """Raised when guest or target identifiers are missing or invalid."""


class MigrationFailedError(Exception):
    """Raised when the transfer fails; nothing was changed."""


@dataclass
class MigrationResult:
    guest_id: uuid.UUID
    target_user_id: uuid.UUID
    moved: dict[str, int] = field(default_factory=dict)
    # one-per-owner rows dropped because the target already had its own
    discarded: dict[str, int] = field(default_factory=dict)

    @property
    def total_moved(self) -> int:
        return sum(self.moved.values())

    @property
    def nothing_to_migrate(self) -> bool:
        return self.total_moved == 0 and not any(self.discarded.values())


class MigrationService:
    """Moves guest-owned rows to an authenticated account."""

    def __init__(self, db: AsyncSession, registry: Optional[OwnableRegistry] = None):
        self.db = db
        self.registry = registry if registry is not None else default_registry()
        self.events = EventStore(db)

    async def migrate(
        self,
        guest_id: Optional[uuid.UUID],
        target_user_id: Optional[uuid.UUID],
        caller: Optional[Principal],
    ) -> MigrationResult:
        """Re-own every guest row to target_user_id, atomically.

        Raises MigrationBadRequestError, MigrationUnauthorizedError or
        MigrationFailedError. Checks run before any write.
        """
        if not guest_id or not target_user_id:
            raise MigrationBadRequestError("Missing user IDs")
        if guest_id == target_user_id:
            raise MigrationBadRequestError("Guest and target user are the same")
        if not isinstance(caller, Authenticated) or caller.id != target_user_id:
            logger.warning(
                "migration.unauthorized",
                guest_id=str(guest_id),
                target_user_id=str(target_user_id),
                caller=repr(caller),
            )
            raise MigrationUnauthorizedError(
                "Caller may only migrate data into their own account"
            )

        log = logger.bind(guest_id=str(guest_id), target_user_id=str(target_user_id))
        result = MigrationResult(guest_id=guest_id, target_user_id=target_user_id)

        try:
            if await self._is_account(guest_id):
                log.warning("migration.source_is_account", caller=repr(caller))
                raise MigrationUnauthorizedError(
                    "Source id belongs to a registered account, not a guest"
                )

            for entity in self.registry:
                if entity.one_per_owner and await self._owns_any(entity, target_user_id):
                    result.moved[entity.name] = 0
                    result.discarded[entity.name] = await self._drop(entity, guest_id)
                else:
                    result.moved[entity.name] = await self._reown(
                        entity, guest_id, target_user_id
                    )

            if not result.nothing_to_migrate:
                await self.events.append(
                    stream_id=f"user:{target_user_id}",
                    event_type=GUEST_MIGRATED,
                    data={
                        "guest_id": str(guest_id),
                        "moved": result.moved,
                        "discarded": result.discarded,
                    },
                    actor_id=str(caller.id),
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("migration.failed", error=str(e))
            raise MigrationFailedError("Failed to migrate guest data") from e

        log.info("migration.completed", moved=result.moved, discarded=result.discarded)
        return result

    async def _is_account(self, user_id: uuid.UUID) -> bool:
        found = await self.db.execute(select(User.id).where(User.id == user_id))
        return found.first() is not None

    async def _owns_any(self, entity: OwnableEntity, owner_id: uuid.UUID) -> bool:
        count = await self.db.execute(
            select(func.count()).select_from(entity.model).where(entity.owner == owner_id)
        )
        return count.scalar_one() > 0

    async def _reown(
        self, entity: OwnableEntity, guest_id: uuid.UUID, target_user_id: uuid.UUID
    ) -> int:
        result = await self.db.execute(
            update(entity.model)
            .where(entity.owner == guest_id)
            .values({entity.owner_column: target_user_id})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def _drop(self, entity: OwnableEntity, guest_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(entity.model)
            .where(entity.owner == guest_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
