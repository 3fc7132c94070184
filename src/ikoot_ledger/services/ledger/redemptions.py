"""Points-for-catalog-item redemptions with stock and delivery validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.models.event import Event
from ikoot_ledger.models.loyalty import (
    DELIVERY_PHONE_MAX_LENGTH,
    UNLIMITED_STOCK,
    DeliveryMethod,
    Redemption,
    RedemptionActorType,
    RedemptionItem,
    RedemptionStatus,
    RedemptionStatusEvent,
)
from ikoot_ledger.services.events import EventDirectory

from .balance_store import BalanceStore
from .errors import (
    DeliveryMethodUnavailableError,
    InvalidDeliveryDetailsError,
    ItemInactiveError,
    OutOfStockError,
    RedemptionItemNotFoundError,
    UserNotFoundError,
)


@dataclass(slots=True, frozen=True)
class DeliveryDetails:
    pickup_event_id: UUID | None = None
    delivery_address: str | None = None
    delivery_phone: str | None = None
    delivery_notes: str | None = None


@dataclass(slots=True, frozen=True)
class RedemptionRecord:
    id: UUID
    user_id: UUID
    item_id: UUID
    item_name: str | None
    points_used: int
    delivery_method: DeliveryMethod
    pickup_event_id: UUID | None
    pickup_event_title: str | None
    delivery_address: str | None
    delivery_phone: str | None
    delivery_notes: str | None
    status: RedemptionStatus
    admin_notes: str | None
    redeemed_at: datetime
    updated_at: datetime


@dataclass(slots=True, frozen=True)
class RedemptionItemRecord:
    id: UUID
    name: str
    description: str | None
    category: str
    points_required: int
    stock_quantity: int
    is_active: bool
    delivery_available: bool
    pickup_available: bool

    @property
    def unlimited_stock(self) -> bool:
        return self.stock_quantity == UNLIMITED_STOCK

    @property
    def in_stock(self) -> bool:
        return self.unlimited_stock or self.stock_quantity > 0

    @classmethod
    def from_model(cls, item: RedemptionItem) -> "RedemptionItemRecord":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            points_required=item.points_required,
            stock_quantity=item.stock_quantity,
            is_active=item.is_active,
            delivery_available=item.delivery_available,
            pickup_available=item.pickup_available,
        )


@dataclass(slots=True, frozen=True)
class RedemptionResult:
    redemption: RedemptionRecord
    remaining_points: int


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def parse_delivery_method(value: Any) -> DeliveryMethod:
    if isinstance(value, DeliveryMethod):
        return value
    try:
        return DeliveryMethod(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidDeliveryDetailsError() from exc


async def load_redemption_records(session: AsyncSession, *criteria: Any) -> list[RedemptionRecord]:
    """Load redemptions matching ``criteria`` newest first, joined with item and pickup event labels."""

    stmt = (
        select(Redemption, RedemptionItem.name, Event.title)
        .join(RedemptionItem, RedemptionItem.id == Redemption.item_id)
        .outerjoin(Event, Event.id == Redemption.pickup_event_id)
        .where(*criteria)
        .order_by(Redemption.redeemed_at.desc())
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return [
        RedemptionRecord(
            id=redemption.id,
            user_id=redemption.user_id,
            item_id=redemption.item_id,
            item_name=item_name,
            points_used=redemption.points_used,
            delivery_method=redemption.delivery_method,
            pickup_event_id=redemption.pickup_event_id,
            pickup_event_title=event_title,
            delivery_address=redemption.delivery_address,
            delivery_phone=redemption.delivery_phone,
            delivery_notes=redemption.delivery_notes,
            status=redemption.status,
            admin_notes=redemption.admin_notes,
            redeemed_at=redemption.redeemed_at,
            updated_at=redemption.updated_at,
        )
        for redemption, item_name, event_title in result.all()
    ]


class RedemptionEngine:
    """Turns points into a pending catalog order inside one transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._balances = BalanceStore(session)
        self._events = EventDirectory(session)

    async def redeem(
        self,
        user_id: UUID,
        item_id: UUID,
        delivery_method: DeliveryMethod | str,
        details: DeliveryDetails | None = None,
    ) -> RedemptionResult:
        details = details or DeliveryDetails()

        item = await self._session.scalar(select(RedemptionItem).where(RedemptionItem.id == item_id))
        if item is None:
            raise RedemptionItemNotFoundError()
        if not item.is_active:
            raise ItemInactiveError()

        method = parse_delivery_method(delivery_method)
        await self._validate_delivery(item, method, details)

        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()

        points_required = item.points_required
        stock_reserved = False
        if not item.has_unlimited_stock:
            stock_reserved = await self._reserve_stock(item.id)

        change = await self._balances.apply_delta(user_id, -points_required)

        redemption = Redemption(
            user_id=user_id,
            item_id=item.id,
            points_used=points_required,
            stock_reserved=stock_reserved,
            delivery_method=method,
            pickup_event_id=details.pickup_event_id if method == DeliveryMethod.PICKUP else None,
            delivery_address=details.delivery_address.strip() if method == DeliveryMethod.DELIVERY else None,
            delivery_phone=details.delivery_phone.strip() if method == DeliveryMethod.DELIVERY else None,
            delivery_notes=None if _blank(details.delivery_notes) else details.delivery_notes.strip(),
            status=RedemptionStatus.PENDING,
        )
        self._session.add(redemption)
        await self._session.flush()
        self._session.add(
            RedemptionStatusEvent(
                redemption_id=redemption.id,
                from_status=None,
                to_status=RedemptionStatus.PENDING.value,
                actor_type=RedemptionActorType.USER,
                actor_id=str(user_id),
            )
        )
        await self._session.flush()

        logger.info(
            "Redemption created",
            user_id=str(user_id),
            item_id=str(item.id),
            redemption_id=str(redemption.id),
            points_used=points_required,
            delivery_method=method.value,
            remaining_points=change.after,
        )
        records = await load_redemption_records(self._session, Redemption.id == redemption.id)
        return RedemptionResult(redemption=records[0], remaining_points=change.after)

    async def list_items(
        self, *, category: str | None = None, include_inactive: bool = False
    ) -> list[RedemptionItemRecord]:
        """Catalog items cheapest first; inactive items only for admin views."""

        stmt = select(RedemptionItem).order_by(RedemptionItem.points_required.asc(), RedemptionItem.name.asc())
        if not include_inactive:
            stmt = stmt.where(RedemptionItem.is_active.is_(True))
        if category:
            stmt = stmt.where(RedemptionItem.category == category)
        result = await self._session.execute(stmt)
        return [RedemptionItemRecord.from_model(item) for item in result.scalars()]

    async def get_item(self, item_id: UUID) -> RedemptionItemRecord:
        item = await self._session.scalar(select(RedemptionItem).where(RedemptionItem.id == item_id))
        if item is None:
            raise RedemptionItemNotFoundError()
        return RedemptionItemRecord.from_model(item)

    async def list_for_user(self, user_id: UUID) -> list[RedemptionRecord]:
        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()
        return await load_redemption_records(self._session, Redemption.user_id == user_id)

    async def list_all(self, status: RedemptionStatus | None = None) -> list[RedemptionRecord]:
        criteria = [Redemption.status == status] if status is not None else []
        return await load_redemption_records(self._session, *criteria)

    async def _validate_delivery(
        self, item: RedemptionItem, method: DeliveryMethod, details: DeliveryDetails
    ) -> None:
        if method == DeliveryMethod.DELIVERY:
            if not item.delivery_available:
                raise DeliveryMethodUnavailableError(method.value)
            if _blank(details.delivery_address) or _blank(details.delivery_phone):
                raise InvalidDeliveryDetailsError("Please provide delivery address and phone number")
            if len(details.delivery_phone.strip()) > DELIVERY_PHONE_MAX_LENGTH:
                raise InvalidDeliveryDetailsError(
                    f"Phone number must be at most {DELIVERY_PHONE_MAX_LENGTH} characters"
                )
            return

        if not item.pickup_available:
            raise DeliveryMethodUnavailableError(method.value)
        if details.pickup_event_id is None:
            raise InvalidDeliveryDetailsError("Please select a pickup event")
        if not await self._events.is_live(details.pickup_event_id):
            raise InvalidDeliveryDetailsError("Selected pickup event is not available")

    async def _reserve_stock(self, item_id: UUID) -> bool:
        """Take one unit of finite stock; false when the item turned unlimited meanwhile."""

        result = await self._session.execute(
            update(RedemptionItem)
            .where(RedemptionItem.id == item_id, RedemptionItem.stock_quantity > 0)
            .values(stock_quantity=RedemptionItem.stock_quantity - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return True

        # stock may have been switched to unlimited since the item was read
        current = await self._session.scalar(
            select(RedemptionItem.stock_quantity).where(RedemptionItem.id == item_id)
        )
        if current != UNLIMITED_STOCK:
            logger.info("Redemption rejected: out of stock", item_id=str(item_id))
            raise OutOfStockError()
        return False


__all__ = [
    "DeliveryDetails",
    "RedemptionEngine",
    "RedemptionItemRecord",
    "RedemptionRecord",
    "RedemptionResult",
    "load_redemption_records",
    "parse_delivery_method",
]
