"""
In-app notification record, one row per delivered notification.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index, JSON

from app.db.base import Base, utcnow


class NotificationType(str, enum.Enum):
    NEW_BOOKING = "NEW_BOOKING"
    BOOKING_ACCEPTED = "BOOKING_ACCEPTED"
    BOOKING_DECLINED = "BOOKING_DECLINED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_STATUS_UPDATE = "BOOKING_STATUS_UPDATE"
    PRICE_ADJUSTED = "PRICE_ADJUSTED"
    PRICE_APPROVED = "PRICE_APPROVED"
    PRICE_REJECTED = "PRICE_REJECTED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYOUT_RELEASED = "PAYOUT_RELEASED"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        # Bell dropdown: unread first, newest first, per user
        Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, read={self.is_read})>"
