"""Audit event store.

Administrative pool changes, registrations, settings updates and guest
migrations each leave one immutable row. An append joins the caller's
transaction, so the event exists exactly when the change it describes
was committed. Key material never goes into `data`.

Event metadata records who acted (actor_id) and, inside an HTTP
request, the request id bound by RequestIdMiddleware.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.db.models import Event


def _event_meta(actor_id: Optional[str]) -> dict:
    meta = {}
    if actor_id:
        meta["actor_id"] = str(actor_id)
    request_id = structlog.contextvars.get_contextvars().get("request_id")
    if request_id:
        meta["request_id"] = request_id
    return meta


class EventStore:
    """Append-only writer and reader over the events table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        actor_id: Optional[str] = None,
    ) -> Event:
        event = Event(
            stream_id=stream_id,
            type=event_type,
            data=data,
            meta=_event_meta(actor_id),
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def read_stream(self, stream_id: str, limit: int = 100) -> list[Event]:
        """Oldest-first history of one stream, e.g. "pool_key:3"."""
        result = await self.db.execute(
            select(Event)
            .where(Event.stream_id == stream_id)
            .order_by(Event.id)
            .limit(limit)
        )
        return list(result.scalars().all())
