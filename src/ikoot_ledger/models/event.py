"""Event records consumed by the ledger for check-in and pickup validation."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, Enum as SqlEnum, String, func
from sqlalchemy.dialects.postgresql import UUID

from ikoot_ledger.db.base import Base, enum_values
from ikoot_ledger.db.types import UTCDateTime


class EventStatus(str, Enum):
    """Lifecycle status maintained by event management."""

    UPCOMING = "upcoming"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


class Event(Base):
    """Venue event; owned by event CRUD, read-only for the ledger."""

    __tablename__ = "events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String, nullable=False)
    location = Column(String, nullable=True)
    status = Column(
        SqlEnum(EventStatus, name="event_status", values_callable=enum_values),
        nullable=False,
        default=EventStatus.UPCOMING,
        server_default=EventStatus.UPCOMING.value,
    )
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False)
