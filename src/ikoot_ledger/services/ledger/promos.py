"""Promo code usage: once per user, within the global cap and validity window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ikoot_ledger.db.types import as_utc
from ikoot_ledger.models.loyalty import Promo, PromoStatus, PromoUsage

from .balance_store import BalanceStore
from .errors import (
    PromoAlreadyUsedError,
    PromoExpiredError,
    PromoNotActiveError,
    PromoNotFoundError,
    PromoUsageLimitReachedError,
    UserNotFoundError,
)
from .unit_of_work import is_unique_violation


@dataclass(slots=True, frozen=True)
class PromoBenefit:
    """Descriptor handed to the external discount calculator."""

    promo_type: str
    discount_type: str | None
    discount_value: Decimal | None
    custom_value: str | None


@dataclass(slots=True, frozen=True)
class PromoResult:
    promo_id: UUID
    code: str
    title: str
    description: str | None
    benefit: PromoBenefit
    usage_count: int
    max_usage: int | None


def normalize_promo_code(code: str) -> str:
    return code.strip().upper()


class PromoUsageLedger:
    """Claims promo codes; the balance is never touched here."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._balances = BalanceStore(session)

    async def use_promo(self, user_id: UUID, promo_id: UUID, *, now: datetime | None = None) -> PromoResult:
        promo = await self._session.scalar(select(Promo).where(Promo.id == promo_id))
        if promo is None:
            raise PromoNotFoundError()
        return await self._claim(user_id, promo, now=now)

    async def use_promo_code(self, user_id: UUID, code: str, *, now: datetime | None = None) -> PromoResult:
        normalized = normalize_promo_code(code)
        if not normalized:
            raise PromoNotFoundError()
        promo = await self._session.scalar(select(Promo).where(func.upper(Promo.code) == normalized))
        if promo is None:
            raise PromoNotFoundError()
        return await self._claim(user_id, promo, now=now)

    async def _claim(self, user_id: UUID, promo: Promo, *, now: datetime | None) -> PromoResult:
        moment = as_utc(now) or datetime.now(timezone.utc)
        self._ensure_usable(promo, moment)

        if not await self._balances.user_exists(user_id):
            raise UserNotFoundError()

        try:
            async with self._session.begin_nested():
                self._session.add(PromoUsage(user_id=user_id, promo_id=promo.id, claimed_at=moment))
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            logger.info("Duplicate promo use rejected", user_id=str(user_id), promo_id=str(promo.id))
            raise PromoAlreadyUsedError() from exc

        result = await self._session.execute(
            update(Promo)
            .where(
                Promo.id == promo.id,
                or_(Promo.max_usage.is_(None), Promo.current_usage < Promo.max_usage),
            )
            .values(current_usage=Promo.current_usage + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info("Promo usage limit reached", user_id=str(user_id), promo_id=str(promo.id))
            raise PromoUsageLimitReachedError()

        usage_count = await self._session.scalar(
            select(Promo.current_usage).where(Promo.id == promo.id)
        )
        logger.info(
            "Promo used",
            user_id=str(user_id),
            promo_id=str(promo.id),
            code=promo.code,
            usage_count=usage_count,
        )
        return PromoResult(
            promo_id=promo.id,
            code=promo.code,
            title=promo.title,
            description=promo.description,
            benefit=PromoBenefit(
                promo_type=promo.promo_type,
                discount_type=promo.discount_type,
                discount_value=promo.discount_value,
                custom_value=promo.custom_value,
            ),
            usage_count=int(usage_count or 0),
            max_usage=promo.max_usage,
        )

    @staticmethod
    def _ensure_usable(promo: Promo, moment: datetime) -> None:
        if promo.status != PromoStatus.ACTIVE:
            raise PromoNotActiveError()
        valid_from = as_utc(promo.valid_from)
        if valid_from is not None and moment < valid_from:
            raise PromoNotActiveError()
        valid_until = as_utc(promo.valid_until)
        if valid_until is not None and moment > valid_until:
            raise PromoExpiredError()


__all__ = ["PromoBenefit", "PromoResult", "PromoUsageLedger", "normalize_promo_code"]
