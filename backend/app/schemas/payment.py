"""
Pydantic schemas for the payment escrow endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PaymentIntentCreate(BaseModel):
    booking_id: int


class PaymentIntentResponse(BaseModel):
    payment_id: int
    client_secret: str
    amount: Decimal
    admin_fee: Decimal
    vendor_payout: Decimal
    currency: str


class PaymentVerifyRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1, max_length=255)


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    amount: Decimal
    admin_fee: Decimal
    vendor_payout: Decimal
    currency: str
    status: str
    payout_status: str
    stripe_payment_id: str
    paid_at: Optional[datetime]
    released_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentVerifyResponse(BaseModel):
    paid: bool
    gateway_status: Optional[str]
    payment: PaymentResponse


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
