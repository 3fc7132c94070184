"""Loyalty ledger and redemption engine."""

from .adjustments import AdjustmentAudit, AdjustmentRecord, AdjustmentResult, BalanceReconciliation
from .balance_store import BalanceChange, BalanceStore
from .checkins import CheckInLedger, CheckInRecord, CheckInResult
from .errors import *  # noqa: F401,F403
from .errors import __all__ as _error_names
from .lifecycle import CancelResult, RedemptionLifecycle, RedemptionStatusEventRecord, StatusChangeResult
from .promos import PromoBenefit, PromoResult, PromoUsageLedger
from .redemptions import (
    DeliveryDetails,
    RedemptionEngine,
    RedemptionItemRecord,
    RedemptionRecord,
    RedemptionResult,
)
from .service import LoyaltyLedgerService
from .unit_of_work import RetryPolicy, run_in_transaction

__all__ = [
    "AdjustmentAudit",
    "AdjustmentRecord",
    "AdjustmentResult",
    "BalanceChange",
    "BalanceReconciliation",
    "BalanceStore",
    "CancelResult",
    "CheckInLedger",
    "CheckInRecord",
    "CheckInResult",
    "DeliveryDetails",
    "LoyaltyLedgerService",
    "PromoBenefit",
    "PromoResult",
    "PromoUsageLedger",
    "RedemptionEngine",
    "RedemptionItemRecord",
    "RedemptionLifecycle",
    "RedemptionRecord",
    "RedemptionResult",
    "RedemptionStatusEventRecord",
    "RetryPolicy",
    "StatusChangeResult",
    "run_in_transaction",
    *_error_names,
]
