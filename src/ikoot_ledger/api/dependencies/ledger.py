from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ikoot_ledger.db.session import get_session_factory
from ikoot_ledger.services.ledger import LoyaltyLedgerService


def get_ledger_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> LoyaltyLedgerService:
    return LoyaltyLedgerService(session_factory)
