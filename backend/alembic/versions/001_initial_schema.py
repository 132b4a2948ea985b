"""Initial schema: users, bookings, price adjustments, payments, notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'CLIENT'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('CLIENT', 'VENDOR', 'ADMIN')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("service_type", sa.String(100), nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_location", sa.String(255), nullable=True),
        sa.Column("guests", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("booking_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("budget", sa.Numeric(10, 2), nullable=False),
        sa.Column("quoted_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("adjusted_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("client_approval_status", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("price_adjustment_reason", sa.Text(), nullable=True),
        sa.Column("price_rejection_reason", sa.Text(), nullable=True),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('PENDING', 'PARTIAL', 'PAID')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint(
            "client_approval_status IS NULL OR "
            "client_approval_status IN ('PENDING_APPROVAL', 'APPROVED', 'REJECTED')",
            name="check_booking_approval_status",
        ),
        sa.CheckConstraint(
            "adjusted_price IS NULL OR client_approval_status IS NOT NULL",
            name="check_adjusted_price_has_approval",
        ),
        sa.CheckConstraint("budget > 0", name="check_booking_budget_positive"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_vendor_id", "bookings", ["vendor_id"])
    # Dashboard queries: "my bookings with status X" for either side
    op.create_index("ix_bookings_vendor_status", "bookings", ["vendor_id", "status"])
    op.create_index("ix_bookings_client_status", "bookings", ["client_id", "status"])

    op.create_table(
        "price_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("proposed_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING_APPROVAL'")),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("proposed_price > 0", name="check_adjustment_price_positive"),
        sa.CheckConstraint(
            "status IN ('PENDING_APPROVAL', 'APPROVED', 'REJECTED', 'SUPERSEDED')",
            name="check_adjustment_status",
        ),
    )
    op.create_index("ix_price_adjustments_id", "price_adjustments", ["id"])
    op.create_index("ix_price_adjustments_booking_id", "price_adjustments", ["booking_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("admin_fee_minor", sa.Integer(), nullable=False),
        sa.Column("vendor_payout_minor", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payout_status", sa.String(30), nullable=False, server_default=sa.text("'HELD'")),
        sa.Column("stripe_payment_id", sa.String(255), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_minor > 0", name="check_payment_amount_positive"),
        sa.CheckConstraint(
            "admin_fee_minor + vendor_payout_minor = amount_minor",
            name="check_payment_split_sums",
        ),
        sa.CheckConstraint("status IN ('PENDING', 'PAID')", name="check_payment_status"),
        sa.CheckConstraint(
            "payout_status IN ('HELD', 'RELEASED_TO_VENDOR')",
            name="check_payment_payout_status",
        ),
        sa.CheckConstraint("payout_status = 'HELD' OR status = 'PAID'", name="check_payout_after_paid"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    # Unique: verification looks payments up by gateway intent id
    op.create_index("ix_payments_stripe_payment_id", "payments", ["stripe_payment_id"], unique=True)
    op.create_index(
        "uq_payments_booking_pending",
        "payments",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index(
        "ix_notifications_user_read_created",
        "notifications",
        ["user_id", "is_read", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("payments")
    op.drop_table("price_adjustments")
    op.drop_table("bookings")
    op.drop_table("users")
