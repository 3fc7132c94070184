"""Typed failures raised by the loyalty ledger components."""

from __future__ import annotations

from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger failures; carries a stable code and a user-facing message."""

    code = "ledger_error"
    default_message = "Ledger operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class LedgerOutcome(LedgerError):
    """Expected business outcome surfaced to the end user as-is, never retried."""


class LedgerPreconditionError(LedgerError):
    """Caller supplied an identifier or input the ledger cannot act on."""


class LedgerUnavailableError(LedgerError):
    """Storage failure; ``transient`` is true when retries were exhausted on a conflict."""

    code = "ledger_unavailable"
    default_message = "The loyalty service is temporarily unavailable. Please try again later."

    def __init__(self, *, transient: bool, message: str | None = None) -> None:
        super().__init__(message)
        self.transient = transient


class AlreadyCheckedInError(LedgerOutcome):
    code = "already_checked_in"

    def __init__(self, *, total_points: int, event_title: str | None = None) -> None:
        if event_title:
            message = f"You have already checked in to {event_title}!"
        else:
            message = "You have already checked in to this event"
        super().__init__(message)
        self.total_points = total_points
        self.event_title = event_title


class PromoAlreadyUsedError(LedgerOutcome):
    code = "promo_already_used"
    default_message = "You have already used this promo"


class InsufficientBalanceError(LedgerOutcome):
    code = "insufficient_points"

    def __init__(self, *, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient points. You need {required} points but only have {available} points."
        )
        self.required = required
        self.available = available


class OutOfStockError(LedgerOutcome):
    code = "out_of_stock"
    default_message = "This item is out of stock"


class PromoNotActiveError(LedgerOutcome):
    code = "promo_not_active"
    default_message = "Promo is not active"


class PromoExpiredError(LedgerOutcome):
    code = "promo_expired"
    default_message = "Promo has expired"


class PromoUsageLimitReachedError(LedgerOutcome):
    code = "promo_usage_limit_reached"
    default_message = "Promo usage limit reached"


class InvalidTransitionError(LedgerOutcome):
    """Raised when a redemption status change violates the order lifecycle."""

    code = "invalid_transition"

    def __init__(self, current_status: str, requested_status: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Cannot transition redemption from {current_status} to {requested_status}"
        )
        self.current_status = current_status
        self.requested_status = requested_status


class EventNotFoundError(LedgerPreconditionError):
    code = "event_not_found"

    def __init__(self, event_id: UUID | str) -> None:
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class UserNotFoundError(LedgerPreconditionError):
    code = "user_not_found"
    default_message = "User not found"


class PromoNotFoundError(LedgerPreconditionError):
    code = "promo_not_found"
    default_message = "Promo not found"


class RedemptionItemNotFoundError(LedgerPreconditionError):
    code = "redemption_item_not_found"
    default_message = "Redemption item not found"


class RedemptionNotFoundError(LedgerPreconditionError):
    code = "redemption_not_found"
    default_message = "Redemption not found"


class ItemInactiveError(LedgerPreconditionError):
    code = "item_inactive"
    default_message = "Redemption item is not available"


class DeliveryMethodUnavailableError(LedgerPreconditionError):
    code = "delivery_method_unavailable"

    def __init__(self, delivery_method: str) -> None:
        label = "Delivery" if delivery_method == "delivery" else "Pickup"
        super().__init__(f"{label} is not available for this item")
        self.delivery_method = delivery_method


class InvalidDeliveryDetailsError(LedgerPreconditionError):
    code = "invalid_delivery_details"
    default_message = "Invalid delivery method"


class InvalidReasonError(LedgerPreconditionError):
    code = "invalid_reason"
    default_message = "A reason is required for point adjustments"


class ZeroAdjustmentError(LedgerPreconditionError):
    code = "zero_adjustment"
    default_message = "Adjustment must be a non-zero number of points"


__all__ = [
    "AlreadyCheckedInError",
    "DeliveryMethodUnavailableError",
    "EventNotFoundError",
    "InsufficientBalanceError",
    "InvalidDeliveryDetailsError",
    "InvalidReasonError",
    "InvalidTransitionError",
    "ItemInactiveError",
    "LedgerError",
    "LedgerOutcome",
    "LedgerPreconditionError",
    "LedgerUnavailableError",
    "OutOfStockError",
    "PromoAlreadyUsedError",
    "PromoExpiredError",
    "PromoNotActiveError",
    "PromoNotFoundError",
    "PromoUsageLimitReachedError",
    "RedemptionItemNotFoundError",
    "RedemptionNotFoundError",
    "UserNotFoundError",
    "ZeroAdjustmentError",
]
