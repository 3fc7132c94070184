from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from ikoot_ledger.app import create_app
from ikoot_ledger.db.base import Base
from ikoot_ledger.db.session import create_engine_for_url, create_session_factory, get_session, get_session_factory
from ikoot_ledger.models import (
    Event,
    EventStatus,
    Promo,
    PromoStatus,
    RedemptionItem,
    User,
)
from ikoot_ledger.observability.ledger import get_ledger_store
from ikoot_ledger.services.ledger import LoyaltyLedgerService, RetryPolicy


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # file-backed so concurrent tasks get separate connections
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_session_factory(engine)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture(autouse=True)
def reset_ledger_store():
    get_ledger_store().reset()
    yield
    get_ledger_store().reset()


@pytest.fixture
def ledger(session_factory) -> LoyaltyLedgerService:
    return LoyaltyLedgerService(
        session_factory,
        retry_policy=RetryPolicy(max_attempts=5, base_backoff_seconds=0.01, max_backoff_seconds=0.1),
    )


class LedgerSeeder:
    """Inserts catalog and identity rows the ledger only reads."""

    def __init__(self, factory) -> None:
        self._factory = factory

    async def _add(self, instance) -> UUID:
        async with self._factory() as session:
            session.add(instance)
            await session.commit()
            return instance.id

    async def user(self, *, points: int = 0, email: str | None = None) -> UUID:
        return await self._add(User(email=email or f"{uuid4().hex}@ikoot.test", points=points))

    async def event(
        self,
        *,
        title: str = "IKOOT Night Market",
        status: EventStatus = EventStatus.LIVE,
        start_date: datetime | None = None,
    ) -> UUID:
        return await self._add(Event(title=title, location="Bangkok", status=status, start_date=start_date))

    async def item(
        self,
        *,
        name: str = "IKOOT Tote Bag",
        category: str = "General",
        points_required: int = 100,
        stock_quantity: int = -1,
        is_active: bool = True,
        delivery_available: bool = True,
        pickup_available: bool = True,
    ) -> UUID:
        return await self._add(
            RedemptionItem(
                name=name,
                category=category,
                points_required=points_required,
                stock_quantity=stock_quantity,
                is_active=is_active,
                delivery_available=delivery_available,
                pickup_available=pickup_available,
            )
        )

    async def promo(
        self,
        *,
        code: str = "WELCOME10",
        max_usage: int | None = None,
        status: PromoStatus = PromoStatus.ACTIVE,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
    ) -> UUID:
        return await self._add(
            Promo(
                code=code,
                title="Welcome discount",
                description="10% off your first drink",
                discount_type="percentage",
                discount_value=10,
                max_usage=max_usage,
                status=status,
                valid_from=valid_from,
                valid_until=valid_until,
            )
        )

    async def balance(self, user_id: UUID) -> int:
        async with self._factory() as session:
            return await session.scalar(select(User.points).where(User.id == user_id))

    async def stock(self, item_id: UUID) -> int:
        async with self._factory() as session:
            return await session.scalar(
                select(RedemptionItem.stock_quantity).where(RedemptionItem.id == item_id)
            )

    async def promo_usage(self, promo_id: UUID) -> int:
        async with self._factory() as session:
            return await session.scalar(select(Promo.current_usage).where(Promo.id == promo_id))


@pytest.fixture
def seed(session_factory) -> LedgerSeeder:
    return LedgerSeeder(session_factory)


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app_with_db):
    app, _ = app_with_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
