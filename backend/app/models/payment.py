"""
Payment model for the escrow flow.

Amounts are stored as integer minor units (pence). The admin fee and the
vendor payout are computed once at creation and never recomputed.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, Index, text

from app.core.money import from_minor_units
from app.db.base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class PayoutStatus(str, enum.Enum):
    HELD = "HELD"
    RELEASED_TO_VENDOR = "RELEASED_TO_VENDOR"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    currency = Column(String(3), nullable=False)

    amount_minor = Column(Integer, nullable=False)
    admin_fee_minor = Column(Integer, nullable=False)
    vendor_payout_minor = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payout_status = Column(String(30), nullable=False, default=PayoutStatus.HELD.value)
    stripe_payment_id = Column(String(255), nullable=False, unique=True, index=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    released_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="check_payment_amount_positive"),
        CheckConstraint(
            "admin_fee_minor + vendor_payout_minor = amount_minor",
            name="check_payment_split_sums",
        ),
        CheckConstraint("status IN ('PENDING', 'PAID')", name="check_payment_status"),
        CheckConstraint(
            "payout_status IN ('HELD', 'RELEASED_TO_VENDOR')",
            name="check_payment_payout_status",
        ),
        # Payouts can only leave escrow once the money is in
        CheckConstraint(
            "payout_status = 'HELD' OR status = 'PAID'",
            name="check_payout_after_paid",
        ),
        # At most one open intent per booking; a second checkout reuses it
        Index(
            "uq_payments_booking_pending",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    @property
    def amount(self):
        return from_minor_units(self.amount_minor)

    @property
    def admin_fee(self):
        return from_minor_units(self.admin_fee_minor)

    @property
    def vendor_payout(self):
        return from_minor_units(self.vendor_payout_minor)

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status}, payout={self.payout_status})>"
