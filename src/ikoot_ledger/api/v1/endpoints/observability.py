"""Observability endpoints for ledger operation counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ikoot_ledger.api.dependencies.security import require_admin_api_key
from ikoot_ledger.observability.ledger import get_ledger_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/ledger",
    dependencies=[Depends(require_admin_api_key)],
    summary="Ledger operation outcome and retry counters",
)
async def ledger_snapshot() -> dict[str, object]:
    return get_ledger_store().snapshot().as_dict()
