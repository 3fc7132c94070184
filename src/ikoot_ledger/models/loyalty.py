"""Loyalty ledger domain models: check-ins, promos, redemptions, and adjustments."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    false,
    true,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ikoot_ledger.db.base import Base, enum_values
from ikoot_ledger.db.types import UTCDateTime


UNLIMITED_STOCK = -1
DELIVERY_PHONE_MAX_LENGTH = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckIn(Base):
    """One awarded check-in per user and event."""

    __tablename__ = "check_ins"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_check_ins_user_event"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    event_title = Column(String, nullable=True)
    points_earned = Column(Integer, nullable=False)
    checked_in_at = Column(UTCDateTime(), nullable=False, default=_utcnow, server_default=func.now())


class PromoStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Promo(Base):
    """Promo code with an optional global usage cap and validity window."""

    __tablename__ = "promos"
    __table_args__ = (
        CheckConstraint("current_usage >= 0", name="ck_promos_usage_non_negative"),
        CheckConstraint(
            "max_usage IS NULL OR current_usage <= max_usage",
            name="ck_promos_usage_within_cap",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(50), nullable=False, unique=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    promo_type = Column(String(20), nullable=False, default="discount", server_default="discount")
    discount_type = Column(String(20), nullable=True, default="percentage", server_default="percentage")
    discount_value = Column(Numeric(10, 2), nullable=True)
    custom_value = Column(Text, nullable=True)
    max_usage = Column(Integer, nullable=True)
    current_usage = Column(Integer, nullable=False, default=0, server_default="0")
    valid_from = Column(UTCDateTime(), nullable=True)
    valid_until = Column(UTCDateTime(), nullable=True)
    status = Column(
        SqlEnum(PromoStatus, name="promo_status", values_callable=enum_values),
        nullable=False,
        default=PromoStatus.ACTIVE,
        server_default=PromoStatus.ACTIVE.value,
    )
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False)

    usages = relationship("PromoUsage", back_populates="promo", cascade="all, delete-orphan")


class PromoUsage(Base):
    """Claim of a promo code by a user; at most one per pair."""

    __tablename__ = "promo_usages"
    __table_args__ = (
        UniqueConstraint("user_id", "promo_id", name="uq_promo_usages_user_promo"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    promo_id = Column(UUID(as_uuid=True), ForeignKey("promos.id", ondelete="CASCADE"), nullable=False, index=True)
    claimed_at = Column(UTCDateTime(), nullable=False, default=_utcnow, server_default=func.now())

    promo = relationship("Promo", back_populates="usages")


class RedemptionItem(Base):
    """Catalog item that can be bought with points."""

    __tablename__ = "redemption_items"
    __table_args__ = (
        CheckConstraint("points_required > 0", name="ck_redemption_items_points_positive"),
        CheckConstraint("stock_quantity >= -1", name="ck_redemption_items_stock_floor"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, default="General", server_default="General")
    points_required = Column(Integer, nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=UNLIMITED_STOCK, server_default=str(UNLIMITED_STOCK))
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    delivery_available = Column(Boolean, nullable=False, default=True, server_default=true())
    pickup_available = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False)

    redemptions = relationship("Redemption", back_populates="item")

    @property
    def has_unlimited_stock(self) -> bool:
        return self.stock_quantity == UNLIMITED_STOCK


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class RedemptionStatus(str, Enum):
    """Order lifecycle for point redemptions."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"


class Redemption(Base):
    """Point redemption order; ``points_used`` is the price snapshot used for refunds."""

    __tablename__ = "redemptions"
    __table_args__ = (
        CheckConstraint("points_used > 0", name="ck_redemptions_points_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(UUID(as_uuid=True), ForeignKey("redemption_items.id"), nullable=False)
    points_used = Column(Integer, nullable=False)
    stock_reserved = Column(Boolean, nullable=False, default=False, server_default=false())
    delivery_method = Column(
        SqlEnum(DeliveryMethod, name="redemption_delivery_method", values_callable=enum_values),
        nullable=False,
    )
    pickup_event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_phone = Column(String(DELIVERY_PHONE_MAX_LENGTH), nullable=True)
    delivery_notes = Column(Text, nullable=True)
    status = Column(
        SqlEnum(RedemptionStatus, name="redemption_status", values_callable=enum_values),
        nullable=False,
        default=RedemptionStatus.PENDING,
        server_default=RedemptionStatus.PENDING.value,
    )
    admin_notes = Column(Text, nullable=True)
    redeemed_at = Column(UTCDateTime(), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        UTCDateTime(),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    item = relationship("RedemptionItem", back_populates="redemptions")
    status_events = relationship(
        "RedemptionStatusEvent", back_populates="redemption", cascade="all, delete-orphan"
    )


class RedemptionActorType(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"


class RedemptionStatusEvent(Base):
    """Audit trail entry for every redemption status change."""

    __tablename__ = "redemption_status_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    redemption_id = Column(
        UUID(as_uuid=True), ForeignKey("redemptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    actor_type = Column(
        SqlEnum(RedemptionActorType, name="redemption_actor_type", values_callable=enum_values),
        nullable=False,
    )
    actor_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow, server_default=func.now())

    redemption = relationship("Redemption", back_populates="status_events")


class PointAdjustment(Base):
    """Append-only audit row for administrative balance changes."""

    __tablename__ = "point_adjustments"
    __table_args__ = (
        CheckConstraint(
            "points_after - points_before = adjustment_amount",
            name="ck_point_adjustments_delta_matches",
        ),
        CheckConstraint("points_after >= 0", name="ck_point_adjustments_after_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_identity = Column(String, nullable=False)
    points_before = Column(Integer, nullable=False)
    points_after = Column(Integer, nullable=False)
    adjustment_amount = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow, server_default=func.now())
