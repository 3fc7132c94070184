"""Create loyalty ledger core tables."""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_01_loyalty_ledger_core"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


event_status = sa.Enum("upcoming", "live", "ended", "cancelled", name="event_status")
promo_status = sa.Enum("active", "inactive", name="promo_status")
delivery_method = sa.Enum("pickup", "delivery", name="redemption_delivery_method")
redemption_status = sa.Enum(
    "pending",
    "processing",
    "shipped",
    "delivered",
    "picked_up",
    "cancelled",
    name="redemption_status",
)
actor_type = sa.Enum("user", "admin", "system", name="redemption_actor_type")


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("status", event_status, nullable=False, server_default="upcoming"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "check_ins",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_id", _uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_title", sa.String(), nullable=True),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "event_id", name="uq_check_ins_user_event"),
    )
    op.create_index("ix_check_ins_user_id", "check_ins", ["user_id"])

    op.create_table(
        "promos",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("promo_type", sa.String(length=20), nullable=False, server_default="discount"),
        sa.Column("discount_type", sa.String(length=20), nullable=True, server_default="percentage"),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("custom_value", sa.Text(), nullable=True),
        sa.Column("max_usage", sa.Integer(), nullable=True),
        sa.Column("current_usage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", promo_status, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("current_usage >= 0", name="ck_promos_usage_non_negative"),
        sa.CheckConstraint(
            "max_usage IS NULL OR current_usage <= max_usage",
            name="ck_promos_usage_within_cap",
        ),
    )
    op.create_index("ix_promos_code", "promos", ["code"], unique=True)

    op.create_table(
        "promo_usages",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("promo_id", _uuid(), sa.ForeignKey("promos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "promo_id", name="uq_promo_usages_user_promo"),
    )
    op.create_index("ix_promo_usages_promo_id", "promo_usages", ["promo_id"])

    op.create_table(
        "redemption_items",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False, server_default="General"),
        sa.Column("points_required", sa.Integer(), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("delivery_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("pickup_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_required > 0", name="ck_redemption_items_points_positive"),
        sa.CheckConstraint("stock_quantity >= -1", name="ck_redemption_items_stock_floor"),
    )

    op.create_table(
        "redemptions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", _uuid(), sa.ForeignKey("redemption_items.id"), nullable=False),
        sa.Column("points_used", sa.Integer(), nullable=False),
        sa.Column("stock_reserved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivery_method", delivery_method, nullable=False),
        sa.Column("pickup_event_id", _uuid(), sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("delivery_phone", sa.String(length=32), nullable=True),
        sa.Column("delivery_notes", sa.Text(), nullable=True),
        sa.Column("status", redemption_status, nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_used > 0", name="ck_redemptions_points_positive"),
    )
    op.create_index("ix_redemptions_user_id", "redemptions", ["user_id"])

    op.create_table(
        "redemption_status_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "redemption_id",
            _uuid(),
            sa.ForeignKey("redemptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        sa.Column("actor_type", actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_redemption_status_events_redemption_id",
        "redemption_status_events",
        ["redemption_id"],
    )

    op.create_table(
        "point_adjustments",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("admin_identity", sa.String(), nullable=False),
        sa.Column("points_before", sa.Integer(), nullable=False),
        sa.Column("points_after", sa.Integer(), nullable=False),
        sa.Column("adjustment_amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "points_after - points_before = adjustment_amount",
            name="ck_point_adjustments_delta_matches",
        ),
        sa.CheckConstraint("points_after >= 0", name="ck_point_adjustments_after_non_negative"),
    )
    op.create_index("ix_point_adjustments_user_id", "point_adjustments", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_point_adjustments_user_id", table_name="point_adjustments")
    op.drop_table("point_adjustments")
    op.drop_index("ix_redemption_status_events_redemption_id", table_name="redemption_status_events")
    op.drop_table("redemption_status_events")
    op.drop_index("ix_redemptions_user_id", table_name="redemptions")
    op.drop_table("redemptions")
    op.drop_table("redemption_items")
    op.drop_index("ix_promo_usages_promo_id", table_name="promo_usages")
    op.drop_table("promo_usages")
    op.drop_index("ix_promos_code", table_name="promos")
    op.drop_table("promos")
    op.drop_index("ix_check_ins_user_id", table_name="check_ins")
    op.drop_table("check_ins")
    op.drop_table("events")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (actor_type, redemption_status, delivery_method, promo_status, event_status):
        enum_type.drop(bind, checkfirst=True)
