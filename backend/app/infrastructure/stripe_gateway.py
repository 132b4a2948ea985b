"""
Stripe implementation of the PaymentGateway interface.

The stripe SDK is synchronous, so calls run in Starlette's threadpool.
The API key is passed per call instead of being set on the stripe module.
"""

import time

import stripe
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import UpstreamError
from app.core.logging import get_logger
from app.core.metrics import gateway_latency
from app.services.interfaces.payment_gateway import PaymentGateway, PaymentIntent

logger = get_logger(__name__)


def _to_intent(obj) -> PaymentIntent:
    metadata = getattr(obj, "metadata", None) or {}
    return PaymentIntent(
        id=obj.id,
        status=obj.status,
        client_secret=getattr(obj, "client_secret", None),
        metadata=dict(metadata),
    )


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents with automatic payment methods."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    async def create_intent(self, amount_minor: int, currency: str, metadata: dict) -> PaymentIntent:
        start = time.perf_counter()
        try:
            obj = await run_in_threadpool(
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=amount_minor,
                currency=currency,
                metadata={k: str(v) for k, v in metadata.items()},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error("stripe_create_intent_failed", error=str(e), amount_minor=amount_minor)
            raise UpstreamError("Payment provider rejected the payment intent") from e
        finally:
            gateway_latency.labels(call="create_intent").observe(time.perf_counter() - start)

        logger.info("stripe_intent_created", intent_id=obj.id, amount_minor=amount_minor, currency=currency)
        return _to_intent(obj)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        start = time.perf_counter()
        try:
            obj = await run_in_threadpool(
                stripe.PaymentIntent.retrieve,
                intent_id,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("stripe_retrieve_intent_failed", intent_id=intent_id, error=str(e))
            raise UpstreamError("Could not verify payment with the payment provider") from e
        finally:
            gateway_latency.labels(call="retrieve_intent").observe(time.perf_counter() - start)

        return _to_intent(obj)

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        start = time.perf_counter()
        try:
            obj = await run_in_threadpool(
                stripe.PaymentIntent.cancel,
                intent_id,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("stripe_cancel_intent_failed", intent_id=intent_id, error=str(e))
            raise UpstreamError("Payment provider could not cancel the payment intent") from e
        finally:
            gateway_latency.labels(call="cancel_intent").observe(time.perf_counter() - start)

        logger.info("stripe_intent_canceled", intent_id=intent_id)
        return _to_intent(obj)
