"""Facade exposing loyalty ledger operations to the routing layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ikoot_ledger.models.loyalty import DeliveryMethod, RedemptionStatus
from ikoot_ledger.services.events import EventDirectory, PickupEventRecord

from .adjustments import AdjustmentAudit, AdjustmentRecord, AdjustmentResult, BalanceReconciliation
from .balance_store import BalanceStore
from .checkins import CheckInLedger, CheckInRecord, CheckInResult
from .lifecycle import CancelResult, RedemptionLifecycle, RedemptionStatusEventRecord, StatusChangeResult
from .promos import PromoResult, PromoUsageLedger
from .redemptions import (
    DeliveryDetails,
    RedemptionEngine,
    RedemptionItemRecord,
    RedemptionRecord,
    RedemptionResult,
)
from .unit_of_work import RetryPolicy, run_in_transaction


class LoyaltyLedgerService:
    """Runs each ledger operation in its own transaction and returns detached results."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._retry_policy = retry_policy

    async def _run(self, name: str, operation):
        return await run_in_transaction(
            self._session_factory,
            operation,
            name=name,
            retry_policy=self._retry_policy,
        )

    async def check_in(self, user_id: UUID, event_id: UUID) -> CheckInResult:
        return await self._run(
            "check_in",
            lambda session: CheckInLedger(session).check_in(user_id, event_id),
        )

    async def use_promo(self, user_id: UUID, promo_id: UUID) -> PromoResult:
        return await self._run(
            "use_promo",
            lambda session: PromoUsageLedger(session).use_promo(user_id, promo_id),
        )

    async def use_promo_code(self, user_id: UUID, code: str) -> PromoResult:
        return await self._run(
            "use_promo_code",
            lambda session: PromoUsageLedger(session).use_promo_code(user_id, code),
        )

    async def redeem(
        self,
        user_id: UUID,
        item_id: UUID,
        delivery_method: DeliveryMethod | str,
        details: DeliveryDetails | None = None,
    ) -> RedemptionResult:
        return await self._run(
            "redeem",
            lambda session: RedemptionEngine(session).redeem(user_id, item_id, delivery_method, details),
        )

    async def cancel_redemption(self, order_id: UUID, user_id: UUID) -> CancelResult:
        return await self._run(
            "cancel_redemption",
            lambda session: RedemptionLifecycle(session).cancel(order_id, user_id),
        )

    async def set_redemption_status(
        self,
        order_id: UUID,
        status: RedemptionStatus | str,
        notes: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> StatusChangeResult:
        return await self._run(
            "set_redemption_status",
            lambda session: RedemptionLifecycle(session).set_status(order_id, status, notes, actor_id=actor_id),
        )

    async def adjust_points(
        self,
        user_id: UUID,
        delta: int,
        reason: str | None,
        admin_identity: str | None = None,
    ) -> AdjustmentResult:
        return await self._run(
            "adjust_points",
            lambda session: AdjustmentAudit(session).adjust(user_id, delta, reason, admin_identity),
        )

    async def get_balance(self, user_id: UUID) -> int:
        return await self._run("get_balance", lambda session: BalanceStore(session).get_balance(user_id))

    async def get_check_in_history(self, user_id: UUID) -> list[CheckInRecord]:
        return await self._run(
            "get_check_in_history",
            lambda session: CheckInLedger(session).list_for_user(user_id),
        )

    async def get_adjustment_history(self, user_id: UUID) -> list[AdjustmentRecord]:
        return await self._run(
            "get_adjustment_history",
            lambda session: AdjustmentAudit(session).list_for_user(user_id),
        )

    async def list_user_redemptions(self, user_id: UUID) -> list[RedemptionRecord]:
        return await self._run(
            "list_user_redemptions",
            lambda session: RedemptionEngine(session).list_for_user(user_id),
        )

    async def list_redemptions(self, status: RedemptionStatus | None = None) -> list[RedemptionRecord]:
        return await self._run(
            "list_redemptions",
            lambda session: RedemptionEngine(session).list_all(status),
        )

    async def list_items(
        self, *, category: str | None = None, include_inactive: bool = False
    ) -> list[RedemptionItemRecord]:
        return await self._run(
            "list_items",
            lambda session: RedemptionEngine(session).list_items(
                category=category, include_inactive=include_inactive
            ),
        )

    async def get_item(self, item_id: UUID) -> RedemptionItemRecord:
        return await self._run("get_item", lambda session: RedemptionEngine(session).get_item(item_id))

    async def list_pickup_events(self) -> list[PickupEventRecord]:
        return await self._run("list_pickup_events", lambda session: EventDirectory(session).list_live())

    async def get_redemption_events(self, order_id: UUID) -> list[RedemptionStatusEventRecord]:
        return await self._run(
            "get_redemption_events",
            lambda session: RedemptionLifecycle(session).list_events(order_id),
        )

    async def reconcile_balance(self, user_id: UUID) -> BalanceReconciliation:
        return await self._run(
            "reconcile_balance",
            lambda session: AdjustmentAudit(session).reconcile(user_id),
        )


__all__ = ["LoyaltyLedgerService"]
