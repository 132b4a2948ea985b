"""
Booking lifecycle: creation, vendor accept/decline/complete and the
generic vendor update.

STATE MACHINE
=============

    PENDING ──accept──> CONFIRMED ──complete──> COMPLETED
       │
       └──decline──> CANCELLED

CANCELLED and COMPLETED are terminal. Every status change, including the
one made through the generic update endpoint, goes through
assert_booking_transition(), so there is no side door around the guards.
(Payment verification moves a PENDING booking to CONFIRMED through the
same table; see payment_service.)

Ownership:
  - vendor-side actions require actor == booking.vendor_id
  - client-side actions require actor == booking.client_id
Ownership is checked before any state is touched, so a forbidden call
never leaves a partial change behind.

Side effects:
  Each mutation commits first, then hands a notification to the sink via
  notification_service.deliver(), which never raises.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ForbiddenError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_booking_transition
from app.core.security import Actor
from app.db.base import utcnow
from app.models.booking import Booking, BookingStatus, ApprovalStatus, BookingPaymentStatus
from app.models.notification import NotificationType
from app.models.payment import Payment, PaymentStatus
from app.models.user import User, UserRole
from app.schemas.booking import BookingCreate
from app.services.interfaces.notification_sink import NotificationMessage, NotificationSink
from app.services.notification_service import deliver

logger = get_logger(__name__)

DEFAULT_DECLINE_NOTE = "Declined by vendor"

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS[BookingStatus(current)]


def assert_booking_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise ValidationError(f"Invalid booking transition: {current} -> {target}")


def booking_url(booking_id: int) -> str:
    return f"{get_settings().FRONTEND_URL}/dashboard/bookings/{booking_id}"


def payment_url(booking_id: int) -> str:
    return f"{get_settings().FRONTEND_URL}/dashboard/payments/{booking_id}"


async def load_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def has_paid_payment(db: AsyncSession, booking_id: int) -> bool:
    result = await db.execute(
        select(Payment.id)
        .where(Payment.booking_id == booking_id, Payment.status == PaymentStatus.PAID.value)
        .limit(1)
    )
    return result.first() is not None


def require_vendor(booking: Booking, actor_id: int, action: str) -> None:
    if booking.vendor_id != actor_id:
        record_booking_transition(action, success=False)
        logger.warning("booking_action_forbidden", booking_id=booking.id, actor_id=actor_id, action=action)
        raise ForbiddenError(f"Only the vendor can {action.replace('_', ' ')} this booking")


def require_client(booking: Booking, actor_id: int, action: str) -> None:
    if booking.client_id != actor_id:
        record_booking_transition(action, success=False)
        logger.warning("booking_action_forbidden", booking_id=booking.id, actor_id=actor_id, action=action)
        raise ForbiddenError(f"Only the client can {action.replace('_', ' ')} this booking")


def _guard_transition(booking: Booking, target: BookingStatus, action: str) -> None:
    try:
        assert_booking_transition(booking.status, target)
    except ValidationError:
        record_booking_transition(action, success=False)
        logger.warning(
            "booking_transition_rejected",
            booking_id=booking.id,
            current=booking.status,
            target=target.value,
            action=action,
        )
        raise


async def create_booking(
    db: AsyncSession,
    sink: NotificationSink,
    actor: Actor,
    data: BookingCreate,
) -> Booking:
    """Client requests a booking from a vendor; starts in PENDING."""
    if actor.role != UserRole.CLIENT:
        raise ForbiddenError("Only clients can create bookings")

    vendor = (await db.execute(select(User).where(User.id == data.vendor_id))).scalar_one_or_none()
    if not vendor or vendor.role != UserRole.VENDOR or not vendor.is_active:
        raise NotFoundError("Vendor not found")
    if vendor.id == actor.user_id:
        raise ValidationError("You cannot book yourself")

    booking = Booking(
        client_id=actor.user_id,
        vendor_id=vendor.id,
        service_type=data.service_type,
        event_date=data.event_date,
        event_location=data.event_location,
        guests=data.guests,
        budget=data.budget,
        message=data.message,
        booking_date=data.booking_date or utcnow(),
        status=BookingStatus.PENDING.value,
        payment_status=BookingPaymentStatus.PENDING.value,
    )
    db.add(booking)
    await db.commit()

    logger.info("booking_created", booking_id=booking.id, client_id=actor.user_id, vendor_id=vendor.id)
    record_booking_transition("create", success=True)

    await deliver(sink, NotificationMessage(
        user_id=vendor.id,
        type=NotificationType.NEW_BOOKING.value,
        title="New Booking Request",
        message=f"You have a new booking request for {data.service_type}",
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id},
    ))
    return booking


async def get_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    booking = await load_booking(db, booking_id)
    if not actor.is_admin and actor.user_id not in (booking.client_id, booking.vendor_id):
        raise ForbiddenError("Not authorized to view this booking")
    return booking


async def list_bookings(
    db: AsyncSession,
    actor: Actor,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Booking], int, dict[str, int]]:
    """
    Bookings visible to the actor: their own as client or vendor, all for admins.
    Returns (page of bookings, total matching, per-status counts).
    """
    scope = []
    if actor.role == UserRole.CLIENT:
        scope.append(Booking.client_id == actor.user_id)
    elif actor.role == UserRole.VENDOR:
        scope.append(Booking.vendor_id == actor.user_id)

    counts_result = await db.execute(
        select(Booking.status, func.count(Booking.id)).where(*scope).group_by(Booking.status)
    )
    counts = {row[0]: row[1] for row in counts_result.all()}
    stats = {s.value.lower(): counts.get(s.value, 0) for s in BookingStatus}
    stats["total"] = sum(counts.values())

    query = select(Booking).where(*scope)
    if status:
        query = query.where(Booking.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Booking.booking_date.desc(), Booking.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total, stats


async def accept_booking(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
) -> Booking:
    booking = await load_booking(db, booking_id)
    require_vendor(booking, actor_id, "accept")
    _guard_transition(booking, BookingStatus.CONFIRMED, "accept")

    booking.status = BookingStatus.CONFIRMED.value
    await db.commit()

    logger.info("booking_accepted", booking_id=booking.id, vendor_id=actor_id)
    record_booking_transition("accept", success=True)

    await deliver(sink, NotificationMessage(
        user_id=booking.client_id,
        type=NotificationType.BOOKING_ACCEPTED.value,
        title="Booking Accepted",
        message="Your booking has been accepted. Please proceed with payment to secure it.",
        action_url=payment_url(booking.id),
        data={"booking_id": booking.id},
    ))
    return booking


async def decline_booking(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
    reason: Optional[str] = None,
) -> Booking:
    booking = await load_booking(db, booking_id)
    require_vendor(booking, actor_id, "decline")
    _guard_transition(booking, BookingStatus.CANCELLED, "decline")

    reason = (reason or "").strip() or None
    booking.status = BookingStatus.CANCELLED.value
    booking.decline_reason = reason
    booking.notes = reason or DEFAULT_DECLINE_NOTE
    await db.commit()

    logger.info("booking_declined", booking_id=booking.id, vendor_id=actor_id, has_reason=bool(reason))
    record_booking_transition("decline", success=True)

    message = "Unfortunately the vendor has declined your booking request."
    if reason:
        message = f"{message} Reason: {reason}"
    await deliver(sink, NotificationMessage(
        user_id=booking.client_id,
        type=NotificationType.BOOKING_DECLINED.value,
        title="Booking Declined",
        message=message,
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "reason": reason},
    ))
    return booking


async def complete_booking(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
) -> Booking:
    booking = await load_booking(db, booking_id)
    require_vendor(booking, actor_id, "complete")
    _guard_transition(booking, BookingStatus.COMPLETED, "complete")

    booking.status = BookingStatus.COMPLETED.value
    await db.commit()

    logger.info("booking_completed", booking_id=booking.id, vendor_id=actor_id)
    record_booking_transition("complete", success=True)

    await deliver(sink, NotificationMessage(
        user_id=booking.client_id,
        type=NotificationType.BOOKING_COMPLETED.value,
        title="Booking Completed",
        message="Your booking has been marked as completed. We hope your event went well!",
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id},
    ))
    return booking


async def update_booking(
    db: AsyncSession,
    sink: NotificationSink,
    booking_id: int,
    actor_id: int,
    fields: dict,
) -> Booking:
    """
    Vendor-side partial update of status, notes, quoted_price and payment_status.
    Only keys present in `fields` are applied. A status change must be a legal
    transition; the client is notified only when the status actually changes.
    """
    booking = await load_booking(db, booking_id)
    require_vendor(booking, actor_id, "update")

    previous_status = booking.status
    new_status = fields.get("status")
    status_changed = new_status is not None and new_status != previous_status
    if status_changed:
        _guard_transition(booking, BookingStatus(new_status), "update")

    new_price = fields.get("quoted_price")
    if new_price is not None:
        if booking.client_approval_status in (ApprovalStatus.PENDING_APPROVAL, ApprovalStatus.APPROVED):
            raise ValidationError("Price is under negotiation; use a price adjustment instead")
        if booking.payment_status == BookingPaymentStatus.PAID:
            raise ValidationError("Cannot change the price of a paid booking")

    new_payment_status = fields.get("payment_status")
    payment_status_changed = new_payment_status is not None and new_payment_status != booking.payment_status
    if payment_status_changed:
        # Escrow payments own this field once money has moved
        if await has_paid_payment(db, booking.id):
            raise ValidationError("Payment status of a paid booking cannot be changed")
        if new_payment_status == BookingPaymentStatus.PAID:
            raise ValidationError("A booking can only be marked paid by a completed payment")

    if new_price is not None:
        booking.quoted_price = new_price
    if status_changed:
        booking.status = new_status
    if fields.get("notes") is not None:
        booking.notes = fields["notes"]
    if payment_status_changed:
        booking.payment_status = new_payment_status

    await db.commit()

    logger.info(
        "booking_updated",
        booking_id=booking.id,
        vendor_id=actor_id,
        fields=sorted(k for k, v in fields.items() if v is not None),
    )

    if status_changed:
        record_booking_transition("update", success=True)
        await deliver(sink, NotificationMessage(
            user_id=booking.client_id,
            type=NotificationType.BOOKING_STATUS_UPDATE.value,
            title="Booking Status Updated",
            message=f"Your booking status has been updated to {new_status}",
            action_url=booking_url(booking.id),
            data={"booking_id": booking.id, "status": new_status, "previous_status": previous_status},
        ))
    return booking
