"""API endpoints for check-ins, balances, promo codes, and redemptions."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ikoot_ledger.api.dependencies.ledger import get_ledger_service
from ikoot_ledger.api.errors import ledger_http_exception
from ikoot_ledger.schemas.ledger import (
    BalanceResponse,
    CheckInHistoryEntry,
    CheckInResponse,
    PickupEventResponse,
    PromoUseResponse,
    RedemptionCancelResponse,
    RedemptionCreateRequest,
    RedemptionCreateResponse,
    RedemptionItemResponse,
    RedemptionResponse,
    UserActionRequest,
)
from ikoot_ledger.services.ledger import DeliveryDetails, LedgerError, LoyaltyLedgerService


router = APIRouter(tags=["loyalty"])


@router.post(
    "/events/{event_id}/checkin",
    response_model=CheckInResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Check a user in to an event and award points",
)
async def check_in(
    event_id: UUID,
    payload: UserActionRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> CheckInResponse:
    try:
        result = await ledger.check_in(payload.user_id, event_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return CheckInResponse.model_validate(result)


@router.get("/users/{user_id}/points", response_model=BalanceResponse)
async def get_points(
    user_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> BalanceResponse:
    try:
        points = await ledger.get_balance(user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return BalanceResponse(user_id=user_id, points=points)


@router.get("/users/{user_id}/checkins", response_model=list[CheckInHistoryEntry])
async def get_check_ins(
    user_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[CheckInHistoryEntry]:
    try:
        records = await ledger.get_check_in_history(user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [CheckInHistoryEntry.model_validate(record) for record in records]


@router.get("/users/{user_id}/redemptions", response_model=list[RedemptionResponse])
async def get_user_redemptions(
    user_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[RedemptionResponse]:
    try:
        records = await ledger.list_user_redemptions(user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [RedemptionResponse.model_validate(record) for record in records]


@router.post("/promos/{promo_id}/use", response_model=PromoUseResponse)
async def use_promo(
    promo_id: UUID,
    payload: UserActionRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> PromoUseResponse:
    try:
        result = await ledger.use_promo(payload.user_id, promo_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return PromoUseResponse.model_validate(result)


@router.post("/promos/code/{code}/use", response_model=PromoUseResponse)
async def use_promo_code(
    code: str,
    payload: UserActionRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> PromoUseResponse:
    try:
        result = await ledger.use_promo_code(payload.user_id, code)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return PromoUseResponse.model_validate(result)


@router.post(
    "/redemptions",
    response_model=RedemptionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_redemption(
    payload: RedemptionCreateRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> RedemptionCreateResponse:
    details = DeliveryDetails(
        pickup_event_id=payload.pickup_event_id,
        delivery_address=payload.delivery_address,
        delivery_phone=payload.delivery_phone,
        delivery_notes=payload.delivery_notes,
    )
    try:
        result = await ledger.redeem(payload.user_id, payload.item_id, payload.delivery_method, details)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return RedemptionCreateResponse.model_validate(result)


@router.post("/redemptions/{order_id}/cancel", response_model=RedemptionCancelResponse)
async def cancel_redemption(
    order_id: UUID,
    payload: UserActionRequest,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> RedemptionCancelResponse:
    try:
        result = await ledger.cancel_redemption(order_id, payload.user_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return RedemptionCancelResponse(
        redemption=RedemptionResponse.model_validate(result.redemption),
        refunded_points=result.refunded_points,
        total_points=result.total_points,
        message=(
            f"Order cancelled successfully! {result.refunded_points} points have been refunded to your account."
        ),
    )


@router.get("/items", response_model=list[RedemptionItemResponse], summary="List redeemable catalog items")
async def list_items(
    category: str | None = Query(None),
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[RedemptionItemResponse]:
    try:
        records = await ledger.list_items(category=category)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [RedemptionItemResponse.model_validate(record) for record in records]


@router.get("/items/{item_id}", response_model=RedemptionItemResponse)
async def get_item(
    item_id: UUID,
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> RedemptionItemResponse:
    try:
        record = await ledger.get_item(item_id)
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return RedemptionItemResponse.model_validate(record)


@router.get("/pickup-events", response_model=list[PickupEventResponse], summary="List live pickup events")
async def list_pickup_events(
    ledger: LoyaltyLedgerService = Depends(get_ledger_service),
) -> list[PickupEventResponse]:
    try:
        records = await ledger.list_pickup_events()
    except LedgerError as exc:
        raise ledger_http_exception(exc) from exc
    return [PickupEventResponse.model_validate(record) for record in records]
