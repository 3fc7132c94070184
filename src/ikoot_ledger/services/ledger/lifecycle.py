"""Redemption order lifecycle: admin transitions, user cancellation, and the status audit trail."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.models.loyalty import (
    UNLIMITED_STOCK,
    Redemption,
    RedemptionActorType,
    RedemptionItem,
    RedemptionStatus,
    RedemptionStatusEvent,
)

from .balance_store import BalanceStore
from .errors import InvalidTransitionError, RedemptionNotFoundError
from .redemptions import RedemptionRecord, load_redemption_records


USER_CANCELLATION_NOTE = "Cancelled by user"


@dataclass(slots=True, frozen=True)
class CancelResult:
    redemption: RedemptionRecord
    refunded_points: int
    total_points: int


@dataclass(slots=True, frozen=True)
class StatusChangeResult:
    redemption: RedemptionRecord
    previous_status: RedemptionStatus
    refunded_points: int = 0


@dataclass(slots=True, frozen=True)
class RedemptionStatusEventRecord:
    id: UUID
    redemption_id: UUID
    from_status: str | None
    to_status: str
    actor_type: RedemptionActorType
    actor_id: str | None
    notes: str | None
    created_at: datetime


def parse_redemption_status(value: RedemptionStatus | str, current: RedemptionStatus) -> RedemptionStatus:
    if isinstance(value, RedemptionStatus):
        return value
    try:
        return RedemptionStatus(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidTransitionError(current.value, str(value), f"Unknown redemption status: {value}") from exc


class RedemptionLifecycle:
    """Moves redemptions between statuses with a guarded flip on the current status."""

    _ALLOWED_TRANSITIONS: dict[RedemptionStatus, set[RedemptionStatus]] = {
        RedemptionStatus.PENDING: {
            RedemptionStatus.PROCESSING,
            RedemptionStatus.SHIPPED,
            RedemptionStatus.DELIVERED,
            RedemptionStatus.PICKED_UP,
            RedemptionStatus.CANCELLED,
        },
        RedemptionStatus.PROCESSING: {
            RedemptionStatus.SHIPPED,
            RedemptionStatus.DELIVERED,
            RedemptionStatus.PICKED_UP,
            RedemptionStatus.CANCELLED,
        },
        RedemptionStatus.SHIPPED: {
            RedemptionStatus.DELIVERED,
        },
        RedemptionStatus.DELIVERED: set(),
        RedemptionStatus.PICKED_UP: set(),
        RedemptionStatus.CANCELLED: set(),
    }

    _CANCELLABLE = {RedemptionStatus.PENDING, RedemptionStatus.PROCESSING}

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._balances = BalanceStore(session)

    async def set_status(
        self,
        order_id: UUID,
        new_status: RedemptionStatus | str,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> StatusChangeResult:
        """Apply an administrative status change; moving to ``cancelled`` refunds like a user cancel."""

        redemption = await self._get(order_id)
        current = redemption.status
        target = parse_redemption_status(new_status, current)

        if target == current or target not in self._ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(current.value, target.value)

        await self._flip(redemption.id, current, target, admin_notes=notes)
        refunded = 0
        if target == RedemptionStatus.CANCELLED:
            refunded = await self._refund(redemption)

        self._record_event(
            redemption.id,
            current,
            target,
            actor_type=RedemptionActorType.ADMIN,
            actor_id=actor_id,
            notes=notes,
        )
        await self._session.flush()

        logger.info(
            "Redemption status transitioned",
            redemption_id=str(redemption.id),
            from_status=current.value,
            to_status=target.value,
            refunded_points=refunded,
        )
        records = await load_redemption_records(self._session, Redemption.id == redemption.id)
        return StatusChangeResult(redemption=records[0], previous_status=current, refunded_points=refunded)

    async def cancel(self, order_id: UUID, user_id: UUID) -> CancelResult:
        redemption = await self._session.scalar(
            select(Redemption).where(Redemption.id == order_id, Redemption.user_id == user_id)
        )
        if redemption is None:
            raise RedemptionNotFoundError("Redemption not found or not authorized")

        current = redemption.status
        if current not in self._CANCELLABLE:
            raise InvalidTransitionError(
                current.value,
                RedemptionStatus.CANCELLED.value,
                f"Cannot cancel {current.value} orders. Only pending and processing orders can be cancelled.",
            )

        await self._flip(redemption.id, current, RedemptionStatus.CANCELLED, admin_notes=USER_CANCELLATION_NOTE)
        refunded = await self._refund(redemption)
        self._record_event(
            redemption.id,
            current,
            RedemptionStatus.CANCELLED,
            actor_type=RedemptionActorType.USER,
            actor_id=str(user_id),
            notes=USER_CANCELLATION_NOTE,
        )
        await self._session.flush()

        total = await self._balances.get_balance(user_id)
        logger.info(
            "Redemption cancelled by user",
            redemption_id=str(redemption.id),
            user_id=str(user_id),
            refunded_points=refunded,
            total_points=total,
        )
        records = await load_redemption_records(self._session, Redemption.id == redemption.id)
        return CancelResult(redemption=records[0], refunded_points=refunded, total_points=total)

    async def list_events(self, order_id: UUID) -> list[RedemptionStatusEventRecord]:
        await self._get(order_id)
        result = await self._session.execute(
            select(RedemptionStatusEvent)
            .where(RedemptionStatusEvent.redemption_id == order_id)
            .order_by(RedemptionStatusEvent.created_at.asc())
        )
        return [
            RedemptionStatusEventRecord(
                id=event.id,
                redemption_id=event.redemption_id,
                from_status=event.from_status,
                to_status=event.to_status,
                actor_type=event.actor_type,
                actor_id=event.actor_id,
                notes=event.notes,
                created_at=event.created_at,
            )
            for event in result.scalars()
        ]

    async def _get(self, order_id: UUID) -> Redemption:
        redemption = await self._session.scalar(select(Redemption).where(Redemption.id == order_id))
        if redemption is None:
            raise RedemptionNotFoundError()
        return redemption

    async def _flip(
        self,
        order_id: UUID,
        current: RedemptionStatus,
        target: RedemptionStatus,
        *,
        admin_notes: str | None,
    ) -> None:
        values: dict[str, object] = {"status": target, "updated_at": datetime.now(timezone.utc)}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        result = await self._session.execute(
            update(Redemption)
            .where(Redemption.id == order_id, Redemption.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # another transaction moved the order first
            raise InvalidTransitionError(current.value, target.value)

    async def _refund(self, redemption: Redemption) -> int:
        await self._balances.apply_delta(redemption.user_id, redemption.points_used)
        if redemption.stock_reserved:
            # an item switched to unlimited keeps its sentinel
            await self._session.execute(
                update(RedemptionItem)
                .where(
                    RedemptionItem.id == redemption.item_id,
                    RedemptionItem.stock_quantity != UNLIMITED_STOCK,
                )
                .values(stock_quantity=RedemptionItem.stock_quantity + 1)
                .execution_options(synchronize_session=False)
            )
        return redemption.points_used

    def _record_event(
        self,
        order_id: UUID,
        from_status: RedemptionStatus,
        to_status: RedemptionStatus,
        *,
        actor_type: RedemptionActorType,
        actor_id: str | None,
        notes: str | None,
    ) -> None:
        self._session.add(
            RedemptionStatusEvent(
                redemption_id=order_id,
                from_status=from_status.value,
                to_status=to_status.value,
                actor_type=actor_type,
                actor_id=actor_id,
                notes=notes,
            )
        )


__all__ = [
    "CancelResult",
    "RedemptionLifecycle",
    "RedemptionStatusEventRecord",
    "StatusChangeResult",
    "USER_CANCELLATION_NOTE",
]
