from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import update

from ikoot_ledger.models import RedemptionActorType, RedemptionItem, RedemptionStatus
from ikoot_ledger.services.ledger import (
    DeliveryDetails,
    InvalidTransitionError,
    LedgerOutcome,
    RedemptionNotFoundError,
)


DELIVERY = DeliveryDetails(delivery_address="88 Silom Road", delivery_phone="+66 2 123 4567")


async def _order(ledger, seed, *, points=1000, price=300, stock=5):
    user_id = await seed.user(points=points)
    item_id = await seed.item(points_required=price, stock_quantity=stock)
    result = await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
    return user_id, item_id, result.redemption


@pytest.mark.asyncio
async def test_cancel_pending_refunds_points_and_stock(ledger, seed) -> None:
    user_id, item_id, order = await _order(ledger, seed)
    assert await seed.balance(user_id) == 700
    assert await seed.stock(item_id) == 4

    result = await ledger.cancel_redemption(order.id, user_id)

    assert result.refunded_points == 300
    assert result.total_points == 1000
    assert result.redemption.status == RedemptionStatus.CANCELLED
    assert result.redemption.admin_notes == "Cancelled by user"
    assert await seed.balance(user_id) == 1000
    assert await seed.stock(item_id) == 5


@pytest.mark.asyncio
async def test_cancel_keeps_unlimited_stock_sentinel(ledger, seed) -> None:
    user_id, item_id, order = await _order(ledger, seed, stock=-1)

    await ledger.cancel_redemption(order.id, user_id)

    assert await seed.stock(item_id) == -1


@pytest.mark.asyncio
async def test_cancel_from_processing_is_allowed(ledger, seed) -> None:
    user_id, _, order = await _order(ledger, seed)
    await ledger.set_redemption_status(order.id, RedemptionStatus.PROCESSING)

    result = await ledger.cancel_redemption(order.id, user_id)

    assert result.redemption.status == RedemptionStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_delivered_order_changes_nothing(ledger, seed) -> None:
    user_id, item_id, order = await _order(ledger, seed)
    await ledger.set_redemption_status(order.id, RedemptionStatus.DELIVERED)

    with pytest.raises(InvalidTransitionError) as excinfo:
        await ledger.cancel_redemption(order.id, user_id)

    assert isinstance(excinfo.value, LedgerOutcome)
    assert "Cannot cancel delivered orders" in excinfo.value.message
    assert await seed.balance(user_id) == 700
    assert await seed.stock(item_id) == 4


@pytest.mark.asyncio
async def test_cancel_requires_owner(ledger, seed) -> None:
    _, _, order = await _order(ledger, seed)
    stranger = await seed.user()

    with pytest.raises(RedemptionNotFoundError):
        await ledger.cancel_redemption(order.id, stranger)
    with pytest.raises(RedemptionNotFoundError):
        await ledger.cancel_redemption(uuid4(), stranger)


@pytest.mark.asyncio
async def test_admin_transitions_follow_lifecycle(ledger, seed) -> None:
    _, _, order = await _order(ledger, seed)

    processed = await ledger.set_redemption_status(order.id, "processing", "Packing")
    shipped = await ledger.set_redemption_status(order.id, RedemptionStatus.SHIPPED)

    assert processed.previous_status == RedemptionStatus.PENDING
    assert processed.redemption.admin_notes == "Packing"
    assert shipped.redemption.status == RedemptionStatus.SHIPPED
    assert shipped.redemption.admin_notes == "Packing"

    with pytest.raises(InvalidTransitionError):
        await ledger.set_redemption_status(order.id, RedemptionStatus.PICKED_UP)
    with pytest.raises(InvalidTransitionError):
        await ledger.set_redemption_status(order.id, RedemptionStatus.SHIPPED)

    delivered = await ledger.set_redemption_status(order.id, RedemptionStatus.DELIVERED)
    assert delivered.redemption.status == RedemptionStatus.DELIVERED

    with pytest.raises(InvalidTransitionError):
        await ledger.set_redemption_status(order.id, RedemptionStatus.CANCELLED)
    with pytest.raises(InvalidTransitionError):
        await ledger.set_redemption_status(order.id, "teleported")


@pytest.mark.asyncio
async def test_admin_cancel_refunds_like_user_cancel(ledger, seed) -> None:
    user_id, item_id, order = await _order(ledger, seed)

    result = await ledger.set_redemption_status(order.id, RedemptionStatus.CANCELLED, "Out of print")

    assert result.refunded_points == 300
    assert await seed.balance(user_id) == 1000
    assert await seed.stock(item_id) == 5


@pytest.mark.asyncio
async def test_status_events_record_every_transition(ledger, seed) -> None:
    user_id, _, order = await _order(ledger, seed)
    await ledger.set_redemption_status(order.id, RedemptionStatus.PROCESSING, actor_id="ops@ikoot.test")
    await ledger.cancel_redemption(order.id, user_id)

    events = await ledger.get_redemption_events(order.id)

    assert [(event.from_status, event.to_status) for event in events] == [
        (None, "pending"),
        ("pending", "processing"),
        ("processing", "cancelled"),
    ]
    assert [event.actor_type for event in events] == [
        RedemptionActorType.USER,
        RedemptionActorType.ADMIN,
        RedemptionActorType.USER,
    ]
    assert events[1].actor_id == "ops@ikoot.test"

    with pytest.raises(RedemptionNotFoundError):
        await ledger.get_redemption_events(uuid4())


@pytest.mark.asyncio
async def test_concurrent_cancellations_refund_once(ledger, seed) -> None:
    user_id, item_id, order = await _order(ledger, seed)

    async def attempt():
        try:
            await ledger.cancel_redemption(order.id, user_id)
        except InvalidTransitionError:
            return False
        return True

    results = await asyncio.gather(*(attempt() for _ in range(4)))

    assert results.count(True) == 1
    assert await seed.balance(user_id) == 1000
    assert await seed.stock(item_id) == 5


async def _set_stock(session_factory, item_id, quantity: int) -> None:
    async with session_factory() as session:
        await session.execute(
            update(RedemptionItem).where(RedemptionItem.id == item_id).values(stock_quantity=quantity)
        )
        await session.commit()


@pytest.mark.asyncio
async def test_cancel_restores_only_units_that_were_reserved(ledger, seed, session_factory) -> None:
    user_id, item_id, order = await _order(ledger, seed, stock=-1)
    # catalog switches the item to finite stock after the order
    await _set_stock(session_factory, item_id, 2)

    await ledger.cancel_redemption(order.id, user_id)

    assert await seed.stock(item_id) == 2
    assert await seed.balance(user_id) == 1000


@pytest.mark.asyncio
async def test_cancel_after_item_turned_unlimited_keeps_sentinel(ledger, seed, session_factory) -> None:
    user_id, item_id, order = await _order(ledger, seed, stock=3)
    await _set_stock(session_factory, item_id, -1)

    await ledger.cancel_redemption(order.id, user_id)

    assert await seed.stock(item_id) == -1
