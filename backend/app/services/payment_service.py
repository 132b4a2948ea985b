"""
Payment escrow: intent creation, verification and payout release.

FLOW
====
  1. create_payment_intent  client opens a gateway intent; a local Payment
                            row is written as PENDING / HELD with the
                            30/70 split fixed in minor units.
  2. verify_payment         gateway says "succeeded" -> Payment PAID,
                            Booking payment_status PAID, Booking CONFIRMED,
                            all in one transaction.
  3. release_payout         admin moves the vendor's share out of escrow:
                            HELD -> RELEASED_TO_VENDOR, exactly once.

Consistency with the gateway:
  - The gateway intent is created before the local row. If the gateway
    call fails nothing is written locally.
  - Verification reads the gateway before touching any row. A failed
    lookup changes nothing.

Idempotency:
  verify_payment may be called repeatedly (success page reloads, webhook
  retries). The PAID flip is a conditional UPDATE ... WHERE status='PENDING'
  (the same compare-and-set used for optimistic locking), so of two
  concurrent verifications only one sees rowcount == 1 and only that one
  touches the booking and notifies the vendor. release_payout uses the
  same guard on payout_status.

One charge per booking:
  - A booking has at most one PENDING payment (partial unique index).
    Opening an intent again returns the existing one; if the price changed
    in between, the old intent is canceled at the gateway first.
  - The PAID flip also requires that no other payment of the booking is
    PAID. If a second charge slips through anyway it is refused with a
    ConflictError and logged as duplicate_charge_detected for a refund.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import record_payment_operation
from app.core.money import split_payment, to_minor_units
from app.core.security import Actor
from app.db.base import utcnow
from app.models.booking import Booking, BookingStatus, ApprovalStatus, BookingPaymentStatus
from app.models.notification import NotificationType
from app.models.payment import Payment, PaymentStatus, PayoutStatus
from app.models.user import UserRole
from app.services.booking_service import booking_url, can_transition, has_paid_payment, load_booking, require_client
from app.services.interfaces.notification_sink import NotificationMessage, NotificationSink
from app.services.interfaces.payment_gateway import PaymentGateway, SETTLED_STATUS, UNSETTLED_STATUSES
from app.services.notification_service import deliver

logger = get_logger(__name__)


def payable_amount(booking: Booking) -> Decimal:
    """
    adjusted_price ?? quoted_price ?? budget.
    A rejected adjustment is no longer an offer, so it is skipped.
    """
    if booking.adjusted_price is not None and booking.client_approval_status != ApprovalStatus.REJECTED:
        return booking.adjusted_price
    if booking.quoted_price is not None:
        return booking.quoted_price
    return booking.budget


def _require_gateway(gateway: Optional[PaymentGateway]) -> PaymentGateway:
    if gateway is None:
        raise ConfigurationError("Payment gateway is not configured")
    return gateway


async def load_payment(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


async def _open_payment_for(db: AsyncSession, booking_id: int) -> Optional[Payment]:
    result = await db.execute(
        select(Payment).where(Payment.booking_id == booking_id, Payment.status == PaymentStatus.PENDING.value)
    )
    return result.scalar_one_or_none()


async def _reusable_client_secret(
    db: AsyncSession,
    gateway: PaymentGateway,
    payment: Payment,
    amount_minor: int,
) -> Optional[str]:
    """
    Client secret of the booking's open intent if it can be handed out again.
    An intent the gateway already canceled, or one opened for a different
    amount (the price changed since), is canceled and its row dropped;
    None then tells the caller to open a fresh intent.
    """
    intent = await gateway.retrieve_intent(payment.stripe_payment_id)
    if intent.status == SETTLED_STATUS:
        raise ValidationError("A payment for this booking has already gone through; verify it to confirm the booking")

    if intent.status != "canceled" and payment.amount_minor == amount_minor:
        if not intent.client_secret:
            raise UpstreamError("Payment provider did not return a client secret")
        return intent.client_secret

    if intent.status != "canceled":
        await gateway.cancel_intent(intent.id)
    await db.delete(payment)
    await db.flush()
    logger.info(
        "stale_payment_intent_discarded",
        payment_id=payment.id,
        intent_id=intent.id,
        old_amount_minor=payment.amount_minor,
        new_amount_minor=amount_minor,
    )
    return None


async def create_payment_intent(
    db: AsyncSession,
    gateway: Optional[PaymentGateway],
    booking_id: int,
    actor_id: int,
    currency: str,
) -> tuple[Payment, str]:
    """
    Returns the booking's PENDING payment and the gateway's client secret.
    A booking has at most one open intent: calling this again hands back the
    same one, so a double submit cannot lead to two charges.
    """
    booking = await load_booking(db, booking_id)
    require_client(booking, actor_id, "pay_for")

    if booking.is_terminal:
        raise ValidationError(f"Cannot pay for a {booking.status.lower()} booking")
    if booking.payment_status == BookingPaymentStatus.PAID or await has_paid_payment(db, booking.id):
        raise ValidationError("Booking has already been paid")
    if booking.client_approval_status == ApprovalStatus.PENDING_APPROVAL:
        raise ValidationError("Please approve or reject the adjusted price before paying")

    gateway = _require_gateway(gateway)

    split = split_payment(to_minor_units(payable_amount(booking)))

    open_payment = await _open_payment_for(db, booking.id)
    if open_payment is not None:
        client_secret = await _reusable_client_secret(db, gateway, open_payment, split.amount_minor)
        if client_secret is not None:
            logger.info("payment_intent_reused", payment_id=open_payment.id, booking_id=booking.id)
            record_payment_operation("create_intent", "reused")
            return open_payment, client_secret

    try:
        intent = await gateway.create_intent(
            split.amount_minor,
            currency,
            metadata={
                "booking_id": booking.id,
                "client_id": booking.client_id,
                "vendor_id": booking.vendor_id,
            },
        )
    except UpstreamError:
        record_payment_operation("create_intent", "error")
        raise
    if not intent.client_secret:
        record_payment_operation("create_intent", "error")
        raise UpstreamError("Payment provider did not return a client secret")

    payment = Payment(
        booking_id=booking.id,
        user_id=actor_id,
        currency=currency,
        amount_minor=split.amount_minor,
        admin_fee_minor=split.admin_fee_minor,
        vendor_payout_minor=split.vendor_payout_minor,
        status=PaymentStatus.PENDING.value,
        payout_status=PayoutStatus.HELD.value,
        stripe_payment_id=intent.id,
    )
    db.add(payment)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request opened this booking's intent first
        await db.rollback()
        record_payment_operation("create_intent", "conflict")
        raise ConflictError("A payment for this booking is already in progress")

    logger.info(
        "payment_intent_created",
        payment_id=payment.id,
        booking_id=booking.id,
        intent_id=intent.id,
        amount_minor=split.amount_minor,
        admin_fee_minor=split.admin_fee_minor,
        vendor_payout_minor=split.vendor_payout_minor,
    )
    record_payment_operation("create_intent", "success")
    return payment, intent.client_secret


async def verify_payment(
    db: AsyncSession,
    gateway: Optional[PaymentGateway],
    sink: NotificationSink,
    payment_intent_id: str,
    actor: Actor,
) -> tuple[Payment, bool, Optional[str]]:
    """
    Reconcile a local payment with the gateway. The payer, the booking's
    vendor and admins may verify.
    Returns (payment, paid, gateway_status); gateway_status is None when the
    payment was already PAID locally and the gateway was not consulted.
    """
    result = await db.execute(select(Payment).where(Payment.stripe_payment_id == payment_intent_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")

    booking = await load_booking(db, payment.booking_id)
    if not actor.is_admin and actor.user_id not in (payment.user_id, booking.vendor_id):
        logger.warning("payment_verify_forbidden", payment_id=payment.id, actor_id=actor.user_id)
        raise ForbiddenError("Not authorized to verify this payment")

    if payment.status == PaymentStatus.PAID:
        record_payment_operation("verify", "duplicate")
        return payment, True, None

    intent = await _require_gateway(gateway).retrieve_intent(payment_intent_id)

    if intent.status in UNSETTLED_STATUSES:
        logger.info("payment_not_settled", payment_id=payment.id, gateway_status=intent.status)
        record_payment_operation("verify", "pending")
        return payment, False, intent.status
    if intent.status != SETTLED_STATUS:
        record_payment_operation("verify", "error")
        raise UpstreamError(f"Unexpected payment status from provider: {intent.status}")

    # The flip only happens while no other payment of this booking is PAID,
    # so a booking never holds two escrowed payments.
    other = aliased(Payment)
    booking_already_paid = (
        select(other.id)
        .where(other.booking_id == payment.booking_id, other.status == PaymentStatus.PAID.value)
        .exists()
    )
    now = utcnow()
    flipped = await db.execute(
        update(Payment)
        .where(
            Payment.id == payment.id,
            Payment.status == PaymentStatus.PENDING.value,
            ~booking_already_paid,
        )
        .values(status=PaymentStatus.PAID.value, paid_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount == 0:
        await db.refresh(payment)
        if payment.status == PaymentStatus.PAID:
            # A concurrent verification got there first
            record_payment_operation("verify", "duplicate")
            return payment, True, intent.status
        logger.error(
            "duplicate_charge_detected",
            payment_id=payment.id,
            booking_id=payment.booking_id,
            intent_id=payment_intent_id,
        )
        record_payment_operation("verify", "conflict")
        raise ConflictError("Booking has already been paid by another payment")

    booking.payment_status = BookingPaymentStatus.PAID.value
    if can_transition(booking.status, BookingStatus.CONFIRMED):
        booking.status = BookingStatus.CONFIRMED.value
    elif booking.status != BookingStatus.CONFIRMED:
        logger.warning("payment_settled_on_closed_booking", booking_id=booking.id, status=booking.status)
    await db.commit()
    await db.refresh(payment)

    logger.info("payment_verified", payment_id=payment.id, booking_id=booking.id, amount_minor=payment.amount_minor)
    record_payment_operation("verify", "success")

    await deliver(sink, NotificationMessage(
        user_id=booking.vendor_id,
        type=NotificationType.PAYMENT_RECEIVED.value,
        title="Payment Received",
        message=f"Payment of £{payment.amount} received for your booking. Funds are held until the event is completed.",
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "payment_id": payment.id, "amount": str(payment.amount)},
    ))
    return payment, True, intent.status


async def release_payout(
    db: AsyncSession,
    sink: NotificationSink,
    payment_id: int,
    actor: Actor,
) -> Payment:
    """Admin releases the vendor's 70% share from escrow."""
    if not actor.is_admin:
        raise ForbiddenError("Admin access required")

    payment = await load_payment(db, payment_id)
    if payment.status != PaymentStatus.PAID:
        record_payment_operation("release", "rejected")
        raise ValidationError("Payment has not been paid yet")
    if payment.payout_status != PayoutStatus.HELD:
        record_payment_operation("release", "rejected")
        raise ValidationError("Payout has already been released")

    now = utcnow()
    released = await db.execute(
        update(Payment)
        .where(
            Payment.id == payment.id,
            Payment.status == PaymentStatus.PAID.value,
            Payment.payout_status == PayoutStatus.HELD.value,
        )
        .values(
            payout_status=PayoutStatus.RELEASED_TO_VENDOR.value,
            released_at=now,
            released_by=actor.user_id,
            updated_at=now,
        )
    )
    if released.rowcount == 0:
        record_payment_operation("release", "rejected")
        raise ValidationError("Payout has already been released")

    await db.commit()
    await db.refresh(payment)
    booking = await load_booking(db, payment.booking_id)

    logger.info(
        "payout_released",
        payment_id=payment.id,
        booking_id=booking.id,
        vendor_id=booking.vendor_id,
        admin_id=actor.user_id,
        vendor_payout_minor=payment.vendor_payout_minor,
    )
    record_payment_operation("release", "success")

    await deliver(sink, NotificationMessage(
        user_id=booking.vendor_id,
        type=NotificationType.PAYOUT_RELEASED.value,
        title="Payout Released",
        message=f"£{payment.vendor_payout} has been released to you for your booking.",
        action_url=booking_url(booking.id),
        data={"booking_id": booking.id, "payment_id": payment.id, "vendor_payout": str(payment.vendor_payout)},
    ))
    return payment


async def list_payments(
    db: AsyncSession,
    actor: Actor,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Payment], int]:
    """Payment history: what a client paid, what a vendor received, everything for admins."""
    query = select(Payment)
    if actor.role == UserRole.VENDOR:
        query = query.join(Booking, Booking.id == Payment.booking_id).where(Booking.vendor_id == actor.user_id)
    elif not actor.is_admin:
        query = query.where(Payment.user_id == actor.user_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def list_held_payouts(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Payment], int]:
    """Paid payments whose vendor share is still in escrow, oldest first."""
    query = select(Payment).where(
        Payment.status == PaymentStatus.PAID.value,
        Payment.payout_status == PayoutStatus.HELD.value,
    )
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Payment.paid_at.asc(), Payment.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
