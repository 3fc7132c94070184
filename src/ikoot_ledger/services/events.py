"""Read-only event lookups used by check-in and pickup validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.models.event import Event, EventStatus


@dataclass(slots=True, frozen=True)
class PickupEventRecord:
    id: UUID
    title: str
    location: str | None
    start_date: datetime | None
    end_date: datetime | None


class EventDirectory:
    """Resolve events owned by event management; never writes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, event_id: UUID) -> Event | None:
        result = await self._session.execute(select(Event).where(Event.id == event_id))
        return result.scalar_one_or_none()

    async def is_live(self, event_id: UUID) -> bool:
        status = await self._session.scalar(select(Event.status).where(Event.id == event_id))
        return status == EventStatus.LIVE

    async def list_live(self) -> list[PickupEventRecord]:
        """Live events a redemption can be picked up at, earliest start first."""

        result = await self._session.execute(
            select(Event)
            .where(Event.status == EventStatus.LIVE)
            .order_by(Event.start_date.asc().nulls_last(), Event.title.asc())
        )
        return [
            PickupEventRecord(
                id=event.id,
                title=event.title,
                location=event.location,
                start_date=event.start_date,
                end_date=event.end_date,
            )
            for event in result.scalars()
        ]


__all__ = ["EventDirectory", "PickupEventRecord"]
