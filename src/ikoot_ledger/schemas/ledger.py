from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ikoot_ledger.models.loyalty import DeliveryMethod, RedemptionActorType, RedemptionStatus

# meta: schema: loyalty-ledger


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class UserActionRequest(_Schema):
    user_id: UUID = Field(..., alias="userId")


class CheckInResponse(_Schema):
    check_in_id: UUID = Field(..., alias="checkInId")
    event_id: UUID = Field(..., alias="eventId")
    event_title: str | None = Field(None, alias="eventTitle")
    points_earned: int = Field(..., alias="pointsEarned")
    total_points: int = Field(..., alias="totalPoints")
    checked_in_at: datetime = Field(..., alias="checkedInAt")


class CheckInHistoryEntry(_Schema):
    id: UUID
    event_id: UUID = Field(..., alias="eventId")
    event_title: str | None = Field(None, alias="eventTitle")
    points_earned: int = Field(..., alias="pointsEarned")
    checked_in_at: datetime = Field(..., alias="checkedInAt")


class BalanceResponse(_Schema):
    user_id: UUID = Field(..., alias="userId")
    points: int


class PromoBenefitResponse(_Schema):
    promo_type: str = Field(..., alias="promoType")
    discount_type: str | None = Field(None, alias="discountType")
    discount_value: Decimal | None = Field(None, alias="discountValue")
    custom_value: str | None = Field(None, alias="customValue")


class PromoUseResponse(_Schema):
    promo_id: UUID = Field(..., alias="promoId")
    code: str
    title: str
    description: str | None = None
    benefit: PromoBenefitResponse
    usage_count: int = Field(..., alias="usageCount")
    max_usage: int | None = Field(None, alias="maxUsage")


class RedemptionItemResponse(_Schema):
    id: UUID
    name: str
    description: str | None = None
    category: str
    points_required: int = Field(..., alias="pointsRequired")
    stock_quantity: int = Field(..., alias="stockQuantity")
    unlimited_stock: bool = Field(..., alias="unlimitedStock")
    in_stock: bool = Field(..., alias="inStock")
    is_active: bool = Field(..., alias="isActive")
    delivery_available: bool = Field(..., alias="deliveryAvailable")
    pickup_available: bool = Field(..., alias="pickupAvailable")


class PickupEventResponse(_Schema):
    id: UUID
    title: str
    location: str | None = None
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")


class RedemptionCreateRequest(_Schema):
    user_id: UUID = Field(..., alias="userId")
    item_id: UUID = Field(..., alias="itemId")
    delivery_method: str = Field(..., alias="deliveryMethod")
    pickup_event_id: UUID | None = Field(None, alias="pickupEventId")
    delivery_address: str | None = Field(None, alias="deliveryAddress")
    delivery_phone: str | None = Field(None, alias="deliveryPhone")
    delivery_notes: str | None = Field(None, alias="deliveryNotes")


class RedemptionResponse(_Schema):
    id: UUID
    user_id: UUID = Field(..., alias="userId")
    item_id: UUID = Field(..., alias="itemId")
    item_name: str | None = Field(None, alias="itemName")
    points_used: int = Field(..., alias="pointsUsed")
    delivery_method: DeliveryMethod = Field(..., alias="deliveryMethod")
    pickup_event_id: UUID | None = Field(None, alias="pickupEventId")
    pickup_event_title: str | None = Field(None, alias="pickupEventTitle")
    delivery_address: str | None = Field(None, alias="deliveryAddress")
    delivery_phone: str | None = Field(None, alias="deliveryPhone")
    delivery_notes: str | None = Field(None, alias="deliveryNotes")
    status: RedemptionStatus
    admin_notes: str | None = Field(None, alias="adminNotes")
    redeemed_at: datetime = Field(..., alias="redeemedAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class RedemptionCreateResponse(_Schema):
    redemption: RedemptionResponse
    remaining_points: int = Field(..., alias="remainingPoints")


class RedemptionCancelResponse(_Schema):
    redemption: RedemptionResponse
    refunded_points: int = Field(..., alias="refundedPoints")
    total_points: int = Field(..., alias="totalPoints")
    message: str


class RedemptionStatusUpdateRequest(_Schema):
    status: RedemptionStatus
    notes: str | None = None


class RedemptionStatusUpdateResponse(_Schema):
    redemption: RedemptionResponse
    previous_status: RedemptionStatus = Field(..., alias="previousStatus")
    refunded_points: int = Field(0, alias="refundedPoints")


class RedemptionStatusEventResponse(_Schema):
    id: UUID
    from_status: str | None = Field(None, alias="fromStatus")
    to_status: str = Field(..., alias="toStatus")
    actor_type: RedemptionActorType = Field(..., alias="actorType")
    actor_id: str | None = Field(None, alias="actorId")
    notes: str | None = None
    created_at: datetime = Field(..., alias="createdAt")


class PointAdjustmentRequest(_Schema):
    adjustment: int
    reason: str
    admin_identity: str | None = Field(None, alias="adminIdentity")


class PointAdjustmentResponse(_Schema):
    adjustment_id: UUID = Field(..., alias="adjustmentId")
    before: int = Field(..., alias="pointsBefore")
    after: int = Field(..., alias="pointsAfter")
    applied_delta: int = Field(..., alias="appliedAdjustment")
    requested_delta: int = Field(..., alias="requestedAdjustment")


class PointAdjustmentHistoryEntry(_Schema):
    id: UUID
    admin_identity: str = Field(..., alias="adminIdentity")
    points_before: int = Field(..., alias="pointsBefore")
    points_after: int = Field(..., alias="pointsAfter")
    adjustment_amount: int = Field(..., alias="adjustmentAmount")
    reason: str
    created_at: datetime = Field(..., alias="createdAt")


class BalanceReconciliationResponse(_Schema):
    user_id: UUID = Field(..., alias="userId")
    stored_balance: int = Field(..., alias="storedBalance")
    derived_balance: int = Field(..., alias="derivedBalance")
    check_in_points: int = Field(..., alias="checkInPoints")
    redeemed_points: int = Field(..., alias="redeemedPoints")
    adjustment_points: int = Field(..., alias="adjustmentPoints")
    consistent: bool
