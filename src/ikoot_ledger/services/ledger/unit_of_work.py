"""One transaction per ledger operation, with bounded retry on lock conflicts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ikoot_ledger.core.settings import settings
from ikoot_ledger.observability.ledger import get_ledger_store
from ikoot_ledger.observability.tracing import get_tracer

from .errors import LedgerError, LedgerUnavailableError

T = TypeVar("T")

# serialization failure, deadlock, lock not available
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}
_TRANSIENT_MESSAGES = ("database is locked", "database table is locked", "deadlock detected")
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return None


def is_unique_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def is_transient_error(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    if exc.connection_invalidated:
        return True
    if _sqlstate(exc) in _TRANSIENT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGES)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_backoff_seconds: float = 0.05
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 1.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.ledger_retry_max_attempts,
            base_backoff_seconds=settings.ledger_retry_base_backoff_seconds,
            backoff_multiplier=settings.ledger_retry_backoff_multiplier,
            max_backoff_seconds=settings.ledger_retry_max_backoff_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        base = max(self.base_backoff_seconds, 0.0)
        multiplier = max(self.backoff_multiplier, 1.0)
        delay = base * (multiplier ** (attempt - 1))
        if self.max_backoff_seconds:
            delay = min(delay, max(self.max_backoff_seconds, 0.0))
        return delay


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    name: str,
    retry_policy: RetryPolicy | None = None,
) -> T:
    """Run ``operation`` in a fresh session and transaction, committing on success.

    Ledger errors roll back and propagate unchanged. Transient storage failures re-run
    the whole operation with exponential backoff; exhausted retries and fatal storage
    errors surface as ``LedgerUnavailableError``.
    """

    policy = retry_policy or RetryPolicy.from_settings()
    max_attempts = max(policy.max_attempts, 1)
    store = get_ledger_store()
    tracer = get_tracer()

    for attempt in range(1, max_attempts + 1):
        with tracer.start_as_current_span(f"ledger.{name}") as span:
            span.set_attribute("ledger.attempt", attempt)
            try:
                async with session_factory() as session:
                    async with session.begin():
                        result = await operation(session)
            except LedgerError as exc:
                span.set_attribute("ledger.outcome", exc.code)
                store.record_outcome(name, exc.code)
                raise
            except SQLAlchemyError as exc:
                transient = is_transient_error(exc)
                if not transient:
                    store.record_failure(name, transient=False)
                    logger.exception("Ledger operation failed", operation=name, attempts=attempt)
                    raise LedgerUnavailableError(transient=False) from exc

                if attempt >= max_attempts:
                    store.record_failure(name, transient=True)
                    logger.error(
                        "Ledger operation exhausted retries",
                        operation=name,
                        attempts=attempt,
                        error=str(exc.orig) if isinstance(exc, DBAPIError) else str(exc),
                    )
                    raise LedgerUnavailableError(transient=True) from exc

                delay = policy.delay_for(attempt)
                store.record_retry(name)
                logger.warning(
                    "Ledger operation retrying",
                    operation=name,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                )
                if delay > 0:
                    await asyncio.sleep(delay)
                continue

            span.set_attribute("ledger.outcome", "success")
            store.record_outcome(name, "success")
            return result

    raise LedgerUnavailableError(transient=True)  # pragma: no cover - loop always returns or raises


__all__ = ["RetryPolicy", "is_transient_error", "is_unique_violation", "run_in_transaction"]
