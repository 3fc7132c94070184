"""Event check-in awards: one per user and event."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.core.settings import settings
from ikoot_ledger.models.loyalty import CheckIn
from ikoot_ledger.services.events import EventDirectory

from .balance_store import BalanceStore
from .errors import AlreadyCheckedInError, EventNotFoundError, UserNotFoundError
from .unit_of_work import is_unique_violation


@dataclass(slots=True, frozen=True)
class CheckInResult:
    check_in_id: UUID
    event_id: UUID
    event_title: str | None
    points_earned: int
    total_points: int
    checked_in_at: datetime


@dataclass(slots=True, frozen=True)
class CheckInRecord:
    id: UUID
    event_id: UUID
    event_title: str | None
    points_earned: int
    checked_in_at: datetime


class CheckInLedger:
    """Records check-ins using the ``(user_id, event_id)`` unique key as the idempotency gate."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._balances = BalanceStore(session)
        self._events = EventDirectory(session)

    async def check_in(self, user_id: UUID, event_id: UUID, *, award_points: int | None = None) -> CheckInResult:
        points = award_points if award_points is not None else settings.checkin_award_points

        event = await self._events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()

        check_in = CheckIn(
            user_id=user_id,
            event_id=event_id,
            event_title=event.title,
            points_earned=points,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(check_in)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            total = await self._balances.get_balance(user_id)
            logger.info(
                "Duplicate check-in rejected",
                user_id=str(user_id),
                event_id=str(event_id),
                total_points=total,
            )
            raise AlreadyCheckedInError(total_points=total, event_title=event.title) from exc

        change = await self._balances.apply_delta(user_id, points)
        logger.info(
            "Recorded check-in",
            user_id=str(user_id),
            event_id=str(event_id),
            points_earned=points,
            total_points=change.after,
        )
        return CheckInResult(
            check_in_id=check_in.id,
            event_id=event_id,
            event_title=event.title,
            points_earned=points,
            total_points=change.after,
            checked_in_at=check_in.checked_in_at,
        )

    async def list_for_user(self, user_id: UUID) -> list[CheckInRecord]:
        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()
        result = await self._session.execute(
            select(CheckIn)
            .where(CheckIn.user_id == user_id)
            .order_by(CheckIn.checked_in_at.desc())
        )
        return [
            CheckInRecord(
                id=row.id,
                event_id=row.event_id,
                event_title=row.event_title,
                points_earned=row.points_earned,
                checked_in_at=row.checked_in_at,
            )
            for row in result.scalars()
        ]


__all__ = ["CheckInLedger", "CheckInRecord", "CheckInResult"]
