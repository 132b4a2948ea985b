"""
Payment gateway factory.
Configures which gateway implementation the escrow flow talks to.
"""

from typing import Optional

from app.core.config import get_settings
from app.infrastructure.stripe_gateway import StripeGateway
from app.services.interfaces.payment_gateway import PaymentGateway

_gateway: Optional[PaymentGateway] = None


def build_payment_gateway() -> Optional[PaymentGateway]:
    """
    Stripe when STRIPE_SECRET_KEY is set, otherwise None.
    The payment service turns a missing gateway into a ConfigurationError.
    """
    settings = get_settings()
    if settings.STRIPE_SECRET_KEY:
        return StripeGateway(api_key=settings.STRIPE_SECRET_KEY)
    return None


def get_payment_gateway() -> Optional[PaymentGateway]:
    """FastAPI dependency; the gateway is stateless so one instance is reused."""
    global _gateway
    if _gateway is None:
        _gateway = build_payment_gateway()
    return _gateway
