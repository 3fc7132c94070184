from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select

from ikoot_ledger.models import DeliveryMethod, EventStatus, RedemptionStatus, RedemptionStatusEvent
from ikoot_ledger.services.ledger import (
    DeliveryDetails,
    DeliveryMethodUnavailableError,
    InsufficientBalanceError,
    InvalidDeliveryDetailsError,
    ItemInactiveError,
    OutOfStockError,
    RedemptionItemNotFoundError,
    UserNotFoundError,
)


DELIVERY = DeliveryDetails(
    delivery_address=" 12 Sukhumvit Soi 11, Bangkok ",
    delivery_phone="+66 81 234 5678",
    delivery_notes="Leave with reception",
)


@pytest.mark.asyncio
async def test_delivery_redemption_debits_points_and_stock(ledger, seed, session_factory) -> None:
    user_id = await seed.user(points=500)
    item_id = await seed.item(name="IKOOT Hoodie", points_required=300, stock_quantity=4)

    result = await ledger.redeem(user_id, item_id, "delivery", DELIVERY)

    order = result.redemption
    assert result.remaining_points == 200
    assert order.status == RedemptionStatus.PENDING
    assert order.points_used == 300
    assert order.item_name == "IKOOT Hoodie"
    assert order.delivery_method == DeliveryMethod.DELIVERY
    assert order.delivery_address == "12 Sukhumvit Soi 11, Bangkok"
    assert order.pickup_event_id is None
    assert await seed.balance(user_id) == 200
    assert await seed.stock(item_id) == 3

    async with session_factory() as session:
        events = (
            await session.execute(
                select(RedemptionStatusEvent).where(RedemptionStatusEvent.redemption_id == order.id)
            )
        ).scalars().all()
    assert [(event.from_status, event.to_status) for event in events] == [(None, "pending")]


@pytest.mark.asyncio
async def test_pickup_drops_delivery_fields(ledger, seed) -> None:
    user_id = await seed.user(points=100)
    event_id = await seed.event(title="Night Market")
    item_id = await seed.item(points_required=50)

    result = await ledger.redeem(
        user_id,
        item_id,
        DeliveryMethod.PICKUP,
        DeliveryDetails(pickup_event_id=event_id, delivery_address="ignored", delivery_phone="ignored"),
    )

    assert result.redemption.pickup_event_id == event_id
    assert result.redemption.pickup_event_title == "Night Market"
    assert result.redemption.delivery_address is None
    assert result.redemption.delivery_phone is None


@pytest.mark.asyncio
async def test_unlimited_stock_is_never_decremented(ledger, seed) -> None:
    user_id = await seed.user(points=100)
    item_id = await seed.item(points_required=10, stock_quantity=-1)

    await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
    await ledger.redeem(user_id, item_id, "delivery", DELIVERY)

    assert await seed.stock(item_id) == -1
    assert await seed.balance(user_id) == 80


@pytest.mark.asyncio
async def test_failed_balance_check_restores_stock(ledger, seed) -> None:
    user_id = await seed.user(points=120)
    item_id = await seed.item(points_required=300, stock_quantity=2)

    with pytest.raises(InsufficientBalanceError) as excinfo:
        await ledger.redeem(user_id, item_id, "delivery", DELIVERY)

    assert excinfo.value.required == 300
    assert excinfo.value.available == 120
    assert await seed.stock(item_id) == 2
    assert await seed.balance(user_id) == 120
    assert await ledger.list_user_redemptions(user_id) == []


@pytest.mark.asyncio
async def test_out_of_stock(ledger, seed) -> None:
    user_id = await seed.user(points=100)
    item_id = await seed.item(points_required=10, stock_quantity=0)

    with pytest.raises(OutOfStockError):
        await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
    assert await seed.balance(user_id) == 100


@pytest.mark.asyncio
async def test_item_and_delivery_preconditions(ledger, seed) -> None:
    user_id = await seed.user(points=100)
    inactive = await seed.item(is_active=False)
    pickup_only = await seed.item(delivery_available=False)
    delivery_only = await seed.item(pickup_available=False)
    open_item = await seed.item(points_required=10)
    ended_event = await seed.event(status=EventStatus.ENDED)

    with pytest.raises(RedemptionItemNotFoundError):
        await ledger.redeem(user_id, uuid4(), "delivery", DELIVERY)
    with pytest.raises(ItemInactiveError):
        await ledger.redeem(user_id, inactive, "delivery", DELIVERY)
    with pytest.raises(DeliveryMethodUnavailableError) as excinfo:
        await ledger.redeem(user_id, pickup_only, "delivery", DELIVERY)
    assert excinfo.value.message == "Delivery is not available for this item"
    with pytest.raises(DeliveryMethodUnavailableError):
        await ledger.redeem(user_id, delivery_only, "pickup", DeliveryDetails(pickup_event_id=ended_event))
    with pytest.raises(InvalidDeliveryDetailsError):
        await ledger.redeem(user_id, open_item, "drone", DELIVERY)
    with pytest.raises(InvalidDeliveryDetailsError):
        await ledger.redeem(user_id, open_item, "delivery", DeliveryDetails(delivery_address="Somewhere"))
    with pytest.raises(InvalidDeliveryDetailsError):
        await ledger.redeem(user_id, open_item, "pickup", DeliveryDetails())
    with pytest.raises(InvalidDeliveryDetailsError) as excinfo:
        await ledger.redeem(user_id, open_item, "pickup", DeliveryDetails(pickup_event_id=ended_event))
    assert excinfo.value.message == "Selected pickup event is not available"
    with pytest.raises(InvalidDeliveryDetailsError) as excinfo:
        await ledger.redeem(
            user_id,
            open_item,
            "delivery",
            DeliveryDetails(delivery_address="Somewhere", delivery_phone="0" * 40),
        )
    assert excinfo.value.message == "Phone number must be at most 32 characters"
    with pytest.raises(UserNotFoundError):
        await ledger.redeem(uuid4(), open_item, "delivery", DELIVERY)

    assert await seed.balance(user_id) == 100


@pytest.mark.asyncio
async def test_last_unit_goes_to_exactly_one_buyer(ledger, seed) -> None:
    item_id = await seed.item(points_required=10, stock_quantity=1)
    users = [await seed.user(points=50) for _ in range(6)]

    async def attempt(user_id):
        try:
            await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
        except OutOfStockError:
            return False
        return True

    results = await asyncio.gather(*(attempt(user_id) for user_id in users))

    assert results.count(True) == 1
    assert await seed.stock(item_id) == 0
    balances = [await seed.balance(user_id) for user_id in users]
    assert sorted(balances) == [40, 50, 50, 50, 50, 50]


@pytest.mark.asyncio
async def test_admin_listing_filters_by_status(ledger, seed) -> None:
    user_id = await seed.user(points=100)
    item_id = await seed.item(points_required=10)

    first = await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
    second = await ledger.redeem(user_id, item_id, "delivery", DELIVERY)
    await ledger.set_redemption_status(first.redemption.id, RedemptionStatus.PROCESSING)

    everything = await ledger.list_redemptions()
    pending = await ledger.list_redemptions(RedemptionStatus.PENDING)

    assert [order.id for order in everything] == [second.redemption.id, first.redemption.id]
    assert [order.id for order in pending] == [second.redemption.id]


@pytest.mark.asyncio
async def test_catalog_lists_active_items_cheapest_first(ledger, seed) -> None:
    sticker = await seed.item(name="Sticker Pack", category="Merch", points_required=20, stock_quantity=0)
    tote = await seed.item(name="Tote Bag", category="Merch", points_required=150, stock_quantity=4)
    drink = await seed.item(name="Free Drink", category="Drinks", points_required=50)
    retired = await seed.item(name="Old Poster", category="Merch", points_required=10, is_active=False)

    items = await ledger.list_items()
    merch = await ledger.list_items(category="Merch")
    everything = await ledger.list_items(include_inactive=True)

    assert [item.id for item in items] == [sticker, drink, tote]
    assert [item.id for item in merch] == [sticker, tote]
    assert [item.id for item in everything] == [retired, sticker, drink, tote]
    by_id = {item.id: item for item in items}
    assert not by_id[sticker].in_stock
    assert by_id[drink].unlimited_stock and by_id[drink].in_stock
    assert by_id[tote].stock_quantity == 4 and by_id[tote].in_stock

    assert (await ledger.get_item(retired)).is_active is False
    with pytest.raises(RedemptionItemNotFoundError):
        await ledger.get_item(uuid4())


@pytest.mark.asyncio
async def test_pickup_events_lists_only_live_events(ledger, seed) -> None:
    now = datetime.now(timezone.utc)
    later = await seed.event(title="Sunday Session", start_date=now + timedelta(days=2))
    sooner = await seed.event(title="Friday Session", start_date=now + timedelta(hours=3))
    await seed.event(title="Next Month", status=EventStatus.UPCOMING)
    await seed.event(title="Last Week", status=EventStatus.ENDED)

    events = await ledger.list_pickup_events()

    assert [event.id for event in events] == [sooner, later]
    assert events[0].title == "Friday Session"
    assert events[0].location == "Bangkok"
