"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional
from pydantic import BaseModel, Field

Price = Annotated[Decimal, Field(gt=0, max_digits=10, decimal_places=2)]


class BookingCreate(BaseModel):
    vendor_id: int
    service_type: str = Field(..., min_length=1, max_length=100)
    event_date: datetime
    event_location: Optional[str] = Field(None, max_length=255)
    guests: Optional[int] = Field(None, gt=0)
    budget: Price
    message: Optional[str] = Field(None, max_length=2000)
    booking_date: Optional[datetime] = None


class BookingUpdate(BaseModel):
    """Vendor-side partial update; only the fields sent are applied."""

    status: Optional[Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"]] = None
    notes: Optional[str] = Field(None, max_length=2000)
    quoted_price: Optional[Price] = None
    payment_status: Optional[Literal["PENDING", "PARTIAL", "PAID"]] = None


class DeclineRequest(BaseModel):
    decline_reason: Optional[str] = Field(None, max_length=1000)


class PriceAdjustmentRequest(BaseModel):
    adjusted_price: Price
    price_adjustment_reason: Optional[str] = Field(None, max_length=1000)


class PriceRejectionRequest(BaseModel):
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class BookingResponse(BaseModel):
    id: int
    client_id: int
    vendor_id: int
    service_type: str
    event_date: datetime
    event_location: Optional[str]
    guests: Optional[int]
    message: Optional[str]
    status: str
    payment_status: str
    budget: Decimal
    quoted_price: Optional[Decimal]
    adjusted_price: Optional[Decimal]
    client_approval_status: Optional[str]
    notes: Optional[str]
    price_adjustment_reason: Optional[str]
    price_rejection_reason: Optional[str]
    decline_reason: Optional[str]
    booking_date: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingStats(BaseModel):
    total: int
    pending: int
    confirmed: int
    cancelled: int
    completed: int


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    stats: BookingStats
    total: int
    page: int
    page_size: int


class PriceAdjustmentResponse(BaseModel):
    id: int
    booking_id: int
    proposed_price: Decimal
    reason: Optional[str]
    status: str
    rejection_reason: Optional[str]
    created_at: datetime
    resolved_at: Optional[datetime]

    model_config = {"from_attributes": True}
