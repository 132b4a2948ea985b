"""
Price negotiation between vendor and client.

The booking keeps a single adjusted_price slot holding the latest vendor
proposal; client_approval_status tracks what the client did with it.
A second proposal before the client answers simply replaces the first
(the older history row is marked SUPERSEDED), so only one adjustment is
ever outstanding and approval always applies the latest price.

Each proposal is also appended to price_adjustments so the negotiation
history survives the overwrite.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_price_adjustment
from app.core.security import Actor
from app.db.base import utcnow
from app.models.booking import (
    Booking,
    ApprovalStatus,
    AdjustmentStatus,
    BookingPaymentStatus,
    PriceAdjustment,
)
from app.models.notification import NotificationType
from app.services.booking_service import booking_url, get_booking, load_booking, require_client, require_vendor
from app.services.interfaces.notification_sink import NotificationMessage, NotificationSink
from app.services.notification_service import deliver

logger = get_logger(__name__)


def _require_pending_adjustment(booking: Booking) -> None:
    if booking.adjusted_price is None or booking.client_approval_status != ApprovalStatus.PENDING_APPROVAL:
        raise ValidationError("No pending price adjustment for this booking")


async def _resolve_latest_adjustment(
    db: AsyncSession,
    booking_id: int,
    status: AdjustmentStatus,
    rejection_reason: Optional[str] = None,
) -> None:
    await db.execute(
        update(PriceAdjustment)
        .where(
            PriceAdjustment.booking_id == booking_id,
            PriceAdjustment.status == AdjustmentStatus.PENDING_APPROVAL.value,
        )
        .values(status=status.value, rejection_reason=rejection_reason, resolved_at=utcnow())
    )


async def adjust_price(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
    new_price: Optional[Decimal],
    reason: Optional[str] = None,
) -> Booking:
    """Vendor proposes a new price; the client has to approve or reject it."""
    if new_price is None or new_price <= 0:
        raise ValidationError("Adjusted price must be greater than zero")

    booking = await load_booking(db, booking_id)
    require_vendor(booking, actor_id, "adjust_price")
    if booking.is_terminal:
        raise ValidationError(f"Cannot adjust the price of a {booking.status.lower()} booking")
    if booking.payment_status == BookingPaymentStatus.PAID:
        raise ValidationError("Cannot adjust the price of a paid booking")

    superseded = booking.client_approval_status == ApprovalStatus.PENDING_APPROVAL
    await _resolve_latest_adjustment(db, booking.id, AdjustmentStatus.SUPERSEDED)
    db.add(PriceAdjustment(booking_id=booking.id, proposed_price=new_price, reason=reason))

    booking.adjusted_price = new_price
    booking.price_adjustment_reason = reason
    booking.price_rejection_reason = None
    booking.client_approval_status = ApprovalStatus.PENDING_APPROVAL.value
    await db.commit()

    logger.info(
        "price_adjusted",
        booking_id=booking.id,
        vendor_id=actor_id,
        adjusted_price=str(new_price),
        superseded_previous=superseded,
    )
    record_price_adjustment("proposed")

    message = f"The vendor has proposed a new price of £{new_price} for your booking."
    if reason:
        message = f"{message} Reason: {reason}"
    await deliver(sink, NotificationMessage(
        user_id=booking.client_id,
        type=NotificationType.PRICE_ADJUSTED.value,
        title="Price Adjustment Requested",
        message=message,
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "adjusted_price": str(new_price)},
    ))
    return booking


async def approve_price(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
) -> Booking:
    """Client accepts the outstanding proposal; it becomes the quoted price."""
    booking = await load_booking(db, booking_id)
    require_client(booking, actor_id, "approve_price")
    _require_pending_adjustment(booking)

    await _resolve_latest_adjustment(db, booking.id, AdjustmentStatus.APPROVED)
    booking.client_approval_status = ApprovalStatus.APPROVED.value
    booking.quoted_price = booking.adjusted_price
    await db.commit()

    logger.info("price_approved", booking_id=booking.id, client_id=actor_id, quoted_price=str(booking.quoted_price))
    record_price_adjustment("approved")

    await deliver(sink, NotificationMessage(
        user_id=booking.vendor_id,
        type=NotificationType.PRICE_APPROVED.value,
        title="Price Approved",
        message=f"The client approved the adjusted price of £{booking.adjusted_price}.",
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "quoted_price": str(booking.quoted_price)},
    ))
    return booking


async def reject_price(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
    reason: Optional[str] = None,
) -> Booking:
    booking = await load_booking(db, booking_id)
    require_client(booking, actor_id, "reject_price")
    _require_pending_adjustment(booking)

    await _resolve_latest_adjustment(db, booking.id, AdjustmentStatus.REJECTED, rejection_reason=reason)
    booking.client_approval_status = ApprovalStatus.REJECTED.value
    booking.price_rejection_reason = reason
    await db.commit()

    logger.info("price_rejected", booking_id=booking.id, client_id=actor_id)
    record_price_adjustment("rejected")

    message = f"The client rejected the adjusted price of £{booking.adjusted_price}."
    if reason:
        message = f"{message} Reason: {reason}"
    await deliver(sink, NotificationMessage(
        user_id=booking.vendor_id,
        type=NotificationType.PRICE_REJECTED.value,
        title="Price Rejected",
        message=message,
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "reason": reason},
    ))
    return booking


async def list_price_adjustments(db: AsyncSession, booking_id: int, actor: Actor) -> list[PriceAdjustment]:
    """Negotiation history for a booking, newest first. Parties and admins only."""
    await get_booking(db, booking_id, actor)
    result = await db.execute(
        select(PriceAdjustment)
        .where(PriceAdjustment.booking_id == booking_id)
        .order_by(PriceAdjustment.created_at.desc(), PriceAdjustment.id.desc())
    )
    return list(result.scalars().all())
