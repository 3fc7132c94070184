"""Administrative endpoints for redemption fulfilment and point adjustments."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from ikoot_ledger.api.dependencies.ledger import get_ledger_service
from ikoot_ledger.api.dependencies.security import require_admin_api_key
from ikoot_ledger.api.errors import ledger_http_exception
from ikoot_ledger.core.settings import settings
from ikoot_ledger.models.loyalty import RedemptionStatus
from ikoot_ledger.schemas.ledger import (
    BalanceReconciliationResponse,
    PointAdjustmentHistoryEntry,
    PointAdjustmentRequest,
    PointAdjustmentResponse,
    RedemptionItemResponse,
    RedemptionResponse,
    RedemptionStatusEventResponse,
    RedemptionStatusUpdateRequest,
    RedemptionStatusUpdateResponse,
)
from ikoot_ledger.services.ledger import LedgerError, LoyaltyLedgerService


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.get("/items", response_model=list[RedemptionItemResponse])
async def list_all_items(
    category: str | None = Query(None),
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[RedemptionItemResponse]:
    try:
        records = await ledger.list_items(category=category, include_inactive=True)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [RedemptionItemResponse.model_validate(record) for record in records]


@router.get("/redemptions", response_model=list[RedemptionResponse])
async def list_redemptions(
    status_filter: str | None = Query(None, alias="status"),
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[RedemptionResponse]:
    status_value: RedemptionStatus | None = None
    if status_filter:
        try:
            status_value = RedemptionStatus(status_filter)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Unsupported redemption status: {status_filter}") from exc
    try:
        records = await ledger.list_redemptions(status_value)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [RedemptionResponse.model_validate(record) for record in records]


@router.put("/redemptions/{order_id}/status", response_model=RedemptionStatusUpdateResponse)
async def update_redemption_status(
    order_id: UUID,
    payload: RedemptionStatusUpdateRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> RedemptionStatusUpdateResponse:
    try:
        result = await ledger.set_redemption_status(
            order_id,
            payload.status,
            payload.notes,
            actor_id=settings.admin_default_identity,
        )
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return RedemptionStatusUpdateResponse.model_validate(result)


@router.get("/redemptions/{order_id}/events", response_model=list[RedemptionStatusEventResponse])
async def list_redemption_events(
    order_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[RedemptionStatusEventResponse]:
    try:
        events = await ledger.get_redemption_events(order_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [RedemptionStatusEventResponse.model_validate(event) for event in events]


@router.post("/users/{user_id}/adjust-points", response_model=PointAdjustmentResponse)
async def adjust_points(
    user_id: UUID,
    payload: PointAdjustmentRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> PointAdjustmentResponse:
    try:
        result = await ledger.adjust_points(
            user_id,
            payload.adjustment,
            payload.reason,
            payload.admin_identity,
        )
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return PointAdjustmentResponse.model_validate(result)


@router.get("/users/{user_id}/point-history", response_model=list[PointAdjustmentHistoryEntry])
async def point_history(
    user_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[PointAdjustmentHistoryEntry]:
    try:
        records = await ledger.get_adjustment_history(user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [PointAdjustmentHistoryEntry.model_validate(record) for record in records]


@router.get("/users/{user_id}/reconciliation", response_model=BalanceReconciliationResponse)
async def reconcile_balance(
    user_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> BalanceReconciliationResponse:
    try:
        reconciliation = await ledger.reconcile_balance(user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return BalanceReconciliationResponse.model_validate(reconciliation)
