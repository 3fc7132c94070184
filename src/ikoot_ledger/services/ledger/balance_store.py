"""Single writer of ``users.points``."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.models.user import User

from .errors import InsufficientBalanceError, UserNotFoundError


@dataclass(slots=True, frozen=True)
class BalanceChange:
    before: int
    after: int
    applied_delta: int


class BalanceStore:
    """Locked read-modify-write of a user's point balance inside the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_balance(self, user_id: UUID) -> int:
        points = await self._session.scalar(select(User.points).where(User.id == user_id))
        if points is None:
            raise UserNotFoundError()
        return int(points)

    async def user_exists(self, user_id: UUID) -> bool:
        found = await self._session.scalar(select(User.id).where(User.id == user_id))
        return found is not None

    async def apply_delta(self, user_id: UUID, delta: int, *, clamp_to_zero: bool = False) -> BalanceChange:
        """Apply ``delta`` to the balance; the row stays locked until the transaction ends.

        Without ``clamp_to_zero`` a result below zero raises ``InsufficientBalanceError``
        and nothing is written. With it the balance floors at zero and ``applied_delta``
        reports what was actually applied.
        """

        before = await self._session.scalar(
            select(User.points).where(User.id == user_id).with_for_update()
        )
        if before is None:
            raise UserNotFoundError()

        before = int(before)
        after = before + delta
        if after < 0:
            if not clamp_to_zero:
                raise InsufficientBalanceError(required=-delta, available=before)
            after = 0

        if after != before:
            await self._session.execute(
                update(User)
                .where(User.id == user_id)
                .values(points=after)
                .execution_options(synchronize_session=False)
            )

        change = BalanceChange(before=before, after=after, applied_delta=after - before)
        logger.debug(
            "Applied balance delta",
            user_id=str(user_id),
            requested_delta=delta,
            applied_delta=change.applied_delta,
            balance=after,
        )
        return change


__all__ = ["BalanceChange", "BalanceStore"]
