"""
Payment gateway interface.
The escrow flow only needs to open an intent and later ask how it went.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

# Gateway statuses that mean "not settled yet, ask again later"
UNSETTLED_STATUSES = frozenset({
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "processing",
    "requires_capture",
    "canceled",
})
SETTLED_STATUS = "succeeded"


@dataclass
class PaymentIntent:
    id: str
    status: str
    client_secret: Optional[str] = None
    metadata: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """
    Implementations:
    - StripeGateway: Stripe PaymentIntents API
    - test doubles in tests/conftest.py
    """

    @abstractmethod
    async def create_intent(self, amount_minor: int, currency: str, metadata: dict) -> PaymentIntent:
        """
        Open a payment intent for amount_minor (pence, cents...).
        Raises UpstreamError if the gateway rejects or fails the call.
        """

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """
        Fetch the current state of an intent.
        Raises UpstreamError if the gateway call fails.
        """

    @abstractmethod
    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        """
        Cancel an unpaid intent so it can no longer be confirmed.
        Raises UpstreamError if the gateway refuses (e.g. it already succeeded).
        """
