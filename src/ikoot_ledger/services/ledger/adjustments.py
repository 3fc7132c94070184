"""Administrative point adjustments and balance reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.core.settings import settings
from ikoot_ledger.models.loyalty import CheckIn, PointAdjustment, Redemption, RedemptionStatus

from .balance_store import BalanceStore
from .errors import InvalidReasonError, UserNotFoundError, ZeroAdjustmentError


@dataclass(slots=True, frozen=True)
class AdjustmentResult:
    adjustment_id: UUID
    before: int
    after: int
    applied_delta: int
    requested_delta: int


@dataclass(slots=True, frozen=True)
class AdjustmentRecord:
    id: UUID
    admin_identity: str
    points_before: int
    points_after: int
    adjustment_amount: int
    reason: str
    created_at: datetime


@dataclass(slots=True, frozen=True)
class BalanceReconciliation:
    user_id: UUID
    stored_balance: int
    derived_balance: int
    check_in_points: int
    redeemed_points: int
    adjustment_points: int

    @property
    def consistent(self) -> bool:
        return self.stored_balance == self.derived_balance


class AdjustmentAudit:
    """Applies admin balance changes and keeps the before/after audit trail."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._balances = BalanceStore(session)

    async def adjust(
        self,
        user_id: UUID,
        delta: int,
        reason: str | None,
        admin_identity: str | None = None,
    ) -> AdjustmentResult:
        """Apply ``delta`` floored at zero and record the change actually applied."""

        if delta == 0:
            raise ZeroAdjustmentError()
        cleaned_reason = (reason or "").strip()
        if not cleaned_reason:
            raise InvalidReasonError()
        identity = (admin_identity or "").strip() or settings.admin_default_identity

        change = await self._balances.apply_delta(user_id, delta, clamp_to_zero=True)
        adjustment = PointAdjustment(
            user_id=user_id,
            admin_identity=identity,
            points_before=change.before,
            points_after=change.after,
            adjustment_amount=change.applied_delta,
            reason=cleaned_reason,
        )
        self._session.add(adjustment)
        await self._session.flush()

        logger.info(
            "Points adjusted",
            user_id=str(user_id),
            admin_identity=identity,
            requested_delta=delta,
            applied_delta=change.applied_delta,
            points_before=change.before,
            points_after=change.after,
        )
        return AdjustmentResult(
            adjustment_id=adjustment.id,
            before=change.before,
            after=change.after,
            applied_delta=change.applied_delta,
            requested_delta=delta,
        )

    async def list_for_user(self, user_id: UUID) -> list[AdjustmentRecord]:
        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()
        result = await self._session.execute(
            select(PointAdjustment)
            .where(PointAdjustment.user_id == user_id)
            .order_by(PointAdjustment.created_at.desc())
        )
        return [
            AdjustmentRecord(
                id=row.id,
                admin_identity=row.admin_identity,
                points_before=row.points_before,
                points_after=row.points_after,
                adjustment_amount=row.adjustment_amount,
                reason=row.reason,
                created_at=row.created_at,
            )
            for row in result.scalars()
        ]

    async def reconcile(self, user_id: UUID) -> BalanceReconciliation:
        """Replay check-in awards, live redemption spends, and adjustments against the stored balance."""

        stored = await self._balances.get_balance(user_id)
        check_in_points = await self._session.scalar(
            select(func.coalesce(func.sum(CheckIn.points_earned), 0)).where(CheckIn.user_id == user_id)
        )
        redeemed_points = await self._session.scalar(
            select(func.coalesce(func.sum(Redemption.points_used), 0)).where(
                Redemption.user_id == user_id,
                Redemption.status != RedemptionStatus.CANCELLED,
            )
        )
        adjustment_points = await self._session.scalar(
            select(func.coalesce(func.sum(PointAdjustment.adjustment_amount), 0)).where(
                PointAdjustment.user_id == user_id
            )
        )
        derived = int(check_in_points) - int(redeemed_points) + int(adjustment_points)
        reconciliation = BalanceReconciliation(
            user_id=user_id,
            stored_balance=stored,
            derived_balance=derived,
            check_in_points=int(check_in_points),
            redeemed_points=int(redeemed_points),
            adjustment_points=int(adjustment_points),
        )
        if not reconciliation.consistent:
            logger.warning(
                "Balance reconciliation mismatch",
                user_id=str(user_id),
                stored_balance=stored,
                derived_balance=derived,
            )
        return reconciliation


__all__ = ["AdjustmentAudit", "AdjustmentRecord", "AdjustmentResult", "BalanceReconciliation"]
