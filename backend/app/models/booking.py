"""
Booking model: a client's request for a vendor's service, plus the
negotiated price and payment progress.

Key design decisions:
- Status and approval fields are plain strings guarded by CHECK constraints;
  transition rules live in app.services.booking_service.
- adjusted_price is a single slot (the latest proposal); the full proposal
  history is kept in price_adjustments.
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)

from app.db.base import Base, TimestampMixin, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ApprovalStatus(str, enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BookingPaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class AdjustmentStatus(str, enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUPERSEDED = "SUPERSEDED"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    service_type = Column(String(100), nullable=False)
    event_date = Column(DateTime(timezone=True), nullable=False)
    event_location = Column(String(255), nullable=True)
    guests = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)
    booking_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=BookingPaymentStatus.PENDING.value)

    budget = Column(Numeric(10, 2), nullable=False)
    quoted_price = Column(Numeric(10, 2), nullable=True)
    adjusted_price = Column(Numeric(10, 2), nullable=True)
    client_approval_status = Column(String(20), nullable=True)

    notes = Column(Text, nullable=True)
    price_adjustment_reason = Column(Text, nullable=True)
    price_rejection_reason = Column(Text, nullable=True)
    decline_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('PENDING', 'PARTIAL', 'PAID')",
            name="check_booking_payment_status",
        ),
        CheckConstraint(
            "client_approval_status IS NULL OR "
            "client_approval_status IN ('PENDING_APPROVAL', 'APPROVED', 'REJECTED')",
            name="check_booking_approval_status",
        ),
        # An adjusted price is always waiting on (or resolved by) the client
        CheckConstraint(
            "adjusted_price IS NULL OR client_approval_status IS NOT NULL",
            name="check_adjusted_price_has_approval",
        ),
        CheckConstraint("budget > 0", name="check_booking_budget_positive"),
        Index("ix_bookings_vendor_status", "vendor_id", "status"),
        Index("ix_bookings_client_status", "client_id", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, client={self.client_id}, vendor={self.vendor_id}, status={self.status})>"


class PriceAdjustment(Base):
    """Append-only record of every price a vendor proposed for a booking."""

    __tablename__ = "price_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    proposed_price = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=AdjustmentStatus.PENDING_APPROVAL.value)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("proposed_price > 0", name="check_adjustment_price_positive"),
        CheckConstraint(
            "status IN ('PENDING_APPROVAL', 'APPROVED', 'REJECTED', 'SUPERSEDED')",
            name="check_adjustment_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<PriceAdjustment(id={self.id}, booking={self.booking_id}, price={self.proposed_price}, status={self.status})>"
