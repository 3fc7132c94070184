"""Translate ledger failures into HTTP errors."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from ikoot_ledger.services.ledger.errors import (
    AlreadyCheckedInError,
    EventNotFoundError,
    InsufficientBalanceError,
    InvalidTransitionError,
    LedgerError,
    LedgerUnavailableError,
    PromoAlreadyUsedError,
    PromoNotFoundError,
    RedemptionItemNotFoundError,
    RedemptionNotFoundError,
    UserNotFoundError,
)


_CONFLICTS = (AlreadyCheckedInError, PromoAlreadyUsedError, InvalidTransitionError)
_NOT_FOUND = (
    EventNotFoundError,
    UserNotFoundError,
    PromoNotFoundError,
    RedemptionItemNotFoundError,
    RedemptionNotFoundError,
)


def ledger_http_exception(exc: LedgerError) -> HTTPException:
    if isinstance(exc, LedgerUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": exc.code, "message": LedgerUnavailableError.default_message},
        )

    detail: dict[str, Any] = {"code": exc.code, "message": exc.message}
    if isinstance(exc, AlreadyCheckedInError):
        detail["alreadyCheckedIn"] = True
        detail["totalPoints"] = exc.total_points
    elif isinstance(exc, InsufficientBalanceError):
        detail["required"] = exc.required
        detail["available"] = exc.available
    elif isinstance(exc, InvalidTransitionError):
        detail["currentStatus"] = exc.current_status
        detail["requestedStatus"] = exc.requested_status

    if isinstance(exc, _CONFLICTS):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, _NOT_FOUND):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=detail)


__all__ = ["ledger_http_exception"]
