from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from ikoot_ledger.models import User
from ikoot_ledger.observability.ledger import get_ledger_store
from ikoot_ledger.services.ledger import (
    BalanceStore,
    DeliveryDetails,
    InsufficientBalanceError,
    LedgerUnavailableError,
    RetryPolicy,
    run_in_transaction,
)
from ikoot_ledger.services.ledger.unit_of_work import is_transient_error, is_unique_violation


FAST_RETRY = RetryPolicy(max_attempts=3, base_backoff_seconds=0.0)


class _PgError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _locked() -> OperationalError:
    return OperationalError("UPDATE users", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_transient_failure_is_retried(session_factory, seed) -> None:
    user_id = await seed.user(points=1)
    calls = {"count": 0}

    async def operation(session):
        calls["count"] += 1
        await session.execute(update(User).where(User.id == user_id).values(points=User.points + 1))
        if calls["count"] < 3:
            raise _locked()
        return "done"

    result = await run_in_transaction(session_factory, operation, name="bump", retry_policy=FAST_RETRY)

    assert result == "done"
    assert calls["count"] == 3
    # rolled-back attempts leave no trace
    assert await seed.balance(user_id) == 2
    snapshot = get_ledger_store().snapshot()
    assert snapshot.retries["bump"] == 2
    assert snapshot.outcomes["bump"]["success"] == 1


@pytest.mark.asyncio
async def test_exhausted_retries_surface_as_unavailable(session_factory) -> None:
    async def operation(session):
        raise _locked()

    with pytest.raises(LedgerUnavailableError) as excinfo:
        await run_in_transaction(session_factory, operation, name="stuck", retry_policy=FAST_RETRY)

    assert excinfo.value.transient is True
    assert "try again later" in excinfo.value.message
    assert get_ledger_store().snapshot().failures["transient:stuck"] == 1


@pytest.mark.asyncio
async def test_fatal_storage_error_is_not_retried(session_factory) -> None:
    calls = {"count": 0}

    async def operation(session):
        calls["count"] += 1
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    with pytest.raises(LedgerUnavailableError) as excinfo:
        await run_in_transaction(session_factory, operation, name="broken", retry_policy=FAST_RETRY)

    assert excinfo.value.transient is False
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_ledger_errors_roll_back_and_propagate(session_factory, seed) -> None:
    user_id = await seed.user(points=10)

    async def operation(session):
        await session.execute(update(User).where(User.id == user_id).values(points=99))
        raise InsufficientBalanceError(required=100, available=99)

    with pytest.raises(InsufficientBalanceError):
        await run_in_transaction(session_factory, operation, name="spend", retry_policy=FAST_RETRY)

    assert await seed.balance(user_id) == 10
    assert get_ledger_store().snapshot().outcomes["spend"]["insufficient_points"] == 1


@pytest.mark.asyncio
async def test_caller_timeout_rolls_back_partial_redemption(ledger, seed, monkeypatch) -> None:
    user_id = await seed.user(points=50)
    item_id = await seed.item(points_required=20, stock_quantity=3)
    details = DeliveryDetails(delivery_address="12 Sukhumvit Soi 11", delivery_phone="0899999999")
    original_apply_delta = BalanceStore.apply_delta

    async def stalled_apply_delta(self, *args, **kwargs):
        change = await original_apply_delta(self, *args, **kwargs)
        await asyncio.sleep(5)
        return change

    monkeypatch.setattr(BalanceStore, "apply_delta", stalled_apply_delta)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(ledger.redeem(user_id, item_id, "delivery", details), timeout=0.3)

    # stock was reserved and the balance debited before the stall
    assert await seed.stock(item_id) == 3
    assert await seed.balance(user_id) == 50
    assert await ledger.list_user_redemptions(user_id) == []

    monkeypatch.setattr(BalanceStore, "apply_delta", original_apply_delta)
    result = await ledger.redeem(user_id, item_id, "delivery", details)
    assert result.remaining_points == 30
    assert await seed.stock(item_id) == 2


def test_error_classification() -> None:
    assert is_transient_error(_locked())
    assert is_transient_error(OperationalError("x", {}, _PgError("could not serialize access", "40001")))
    assert is_transient_error(OperationalError("x", {}, _PgError("deadlock detected", "40P01")))
    assert not is_transient_error(OperationalError("x", {}, Exception("no such table: users")))
    assert not is_transient_error(IntegrityError("x", {}, Exception("database is locked")))

    assert is_unique_violation(
        IntegrityError("x", {}, Exception("UNIQUE constraint failed: check_ins.user_id, check_ins.event_id"))
    )
    assert is_unique_violation(IntegrityError("x", {}, _PgError("duplicate key", "23505")))
    assert not is_unique_violation(IntegrityError("x", {}, Exception("FOREIGN KEY constraint failed")))


def test_backoff_grows_and_caps() -> None:
    policy = RetryPolicy(max_attempts=5, base_backoff_seconds=0.1, backoff_multiplier=2.0, max_backoff_seconds=0.3)

    assert [policy.delay_for(attempt) for attempt in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.3, 0.3])
