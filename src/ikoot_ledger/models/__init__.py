"""SQLAlchemy models package."""

from .event import Event, EventStatus  # noqa: F401
from .loyalty import (  # noqa: F401
    UNLIMITED_STOCK,
    CheckIn,
    DeliveryMethod,
    PointAdjustment,
    Promo,
    PromoStatus,
    PromoUsage,
    Redemption,
    RedemptionActorType,
    RedemptionItem,
    RedemptionStatus,
    RedemptionStatusEvent,
)
from .user import User, UserRoleEnum, UserStatusEnum  # noqa: F401
