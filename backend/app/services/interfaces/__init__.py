"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import PaymentGateway, PaymentIntent, SETTLED_STATUS, UNSETTLED_STATUSES
from .notification_sink import NotificationSink, NotificationMessage

__all__ = [
    'PaymentGateway', 'PaymentIntent', 'SETTLED_STATUS', 'UNSETTLED_STATUSES',
    'NotificationSink', 'NotificationMessage',
]
