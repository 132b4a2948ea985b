"""
Payment endpoints: open a payment intent, verify it, payment history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.config import get_settings
from app.core.security import Actor, get_current_actor, get_current_user_id
from app.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    PaymentResponse,
    PaymentListResponse,
)
from app.services import payment_service
from app.services.cache_service import invalidate_payout_cache
from app.services.gateway_factory import get_payment_gateway
from app.services.interfaces.notification_sink import NotificationSink
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.notification_service import get_notification_sink

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/intents", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    body: PaymentIntentCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
):
    """
    Open a payment intent for a booking. The amount is the adjusted price,
    else the quoted price, else the client's budget. Funds are held in
    escrow: 30% platform fee, 70% released to the vendor later.
    """
    payment, client_secret = await payment_service.create_payment_intent(
        db, gateway, body.booking_id, user_id, get_settings().PAYMENT_CURRENCY
    )
    return PaymentIntentResponse(
        payment_id=payment.id,
        client_secret=client_secret,
        amount=payment.amount,
        admin_fee=payment.admin_fee,
        vendor_payout=payment.vendor_payout,
        currency=payment.currency,
    )


@router.post("/verify", response_model=PaymentVerifyResponse)
async def verify_payment(
    body: PaymentVerifyRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """
    Check a payment intent with the gateway. Safe to call repeatedly.
    Only the payer, the booking's vendor or an admin may verify.
    """
    payment, paid, gateway_status = await payment_service.verify_payment(
        db, gateway, sink, body.payment_intent_id, actor
    )
    if paid and gateway_status is not None:
        await invalidate_payout_cache()
    return PaymentVerifyResponse(
        paid=paid,
        gateway_status=gateway_status,
        payment=PaymentResponse.model_validate(payment),
    )


@router.get("/", response_model=PaymentListResponse)
async def list_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    payments, total = await payment_service.list_payments(db, actor, page, page_size)
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
    )
