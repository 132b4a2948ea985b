from app.models.user import User, UserRole
from app.models.booking import (
    Booking,
    BookingStatus,
    ApprovalStatus,
    BookingPaymentStatus,
    PriceAdjustment,
    AdjustmentStatus,
)
from app.models.payment import Payment, PaymentStatus, PayoutStatus
from app.models.notification import Notification, NotificationType

__all__ = [
    "User", "UserRole",
    "Booking", "BookingStatus", "ApprovalStatus", "BookingPaymentStatus",
    "PriceAdjustment", "AdjustmentStatus",
    "Payment", "PaymentStatus", "PayoutStatus",
    "Notification", "NotificationType",
]
