"""
Booking endpoints: creation, vendor actions and price negotiation.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.security import Actor, get_current_actor, get_current_user_id
from app.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingListResponse,
    DeclineRequest,
    PriceAdjustmentRequest,
    PriceRejectionRequest,
    PriceAdjustmentResponse,
)
from app.services import booking_service, pricing_service
from app.services.interfaces.notification_sink import NotificationSink
from app.services.notification_service import get_notification_sink

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Request a booking from a vendor. Clients only; the vendor is notified."""
    return await booking_service.create_booking(db, sink, actor, booking_data)


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Bookings for the current user's role, with per-status counts."""
    bookings, total, stats = await booking_service.list_bookings(db, actor, status_filter, page, page_size)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        stats=stats,
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, actor)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    update_data: BookingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Vendor update of status, notes, quoted price or payment status."""
    return await booking_service.update_booking(
        db, sink, booking_id, user_id, update_data.model_dump(exclude_unset=True)
    )


@router.put("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Vendor accepts a pending booking; the client is asked to pay."""
    return await booking_service.accept_booking(db, sink, booking_id, user_id)


@router.put("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: int,
    body: Optional[DeclineRequest] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    reason = body.decline_reason if body else None
    return await booking_service.decline_booking(db, sink, booking_id, user_id, reason)


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    return await booking_service.complete_booking(db, sink, booking_id, user_id)


@router.put("/{booking_id}/adjust-price", response_model=BookingResponse)
async def adjust_price(
    booking_id: int,
    body: PriceAdjustmentRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Vendor proposes a new price; replaces any proposal the client hasn't answered."""
    return await pricing_service.adjust_price(
        db, sink, booking_id, user_id, body.adjusted_price, body.price_adjustment_reason
    )


@router.put("/{booking_id}/approve-price", response_model=BookingResponse)
async def approve_price(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    return await pricing_service.approve_price(db, sink, booking_id, user_id)


@router.put("/{booking_id}/reject-price", response_model=BookingResponse)
async def reject_price(
    booking_id: int,
    body: Optional[PriceRejectionRequest] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    reason = body.rejection_reason if body else None
    return await pricing_service.reject_price(db, sink, booking_id, user_id, reason)


@router.get("/{booking_id}/price-adjustments", response_model=list[PriceAdjustmentResponse])
async def list_price_adjustments(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Negotiation history for a booking, newest first."""
    return await pricing_service.list_price_adjustments(db, booking_id, actor)
