"""
Admin endpoints for the escrow payout dashboard.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.logging import get_logger
from app.core.security import Actor, require_admin
from app.schemas.payment import PaymentResponse, PaymentListResponse
from app.services import payment_service
from app.services.cache_service import get_cached_held_payouts, set_cached_held_payouts, invalidate_payout_cache
from app.services.interfaces.notification_sink import NotificationSink
from app.services.notification_service import get_notification_sink

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/payments/held", response_model=PaymentListResponse)
async def list_held_payouts(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Paid payments whose vendor share is still held.
    Cached in Redis; invalidated when a payment is verified or released.
    """
    cached = await get_cached_held_payouts(page, page_size)
    if cached:
        logger.info("held_payouts_cache_hit", page=page)
        cached["cached"] = True
        return PaymentListResponse(**cached)

    payments, total = await payment_service.list_held_payouts(db, page, page_size)
    response_data = {
        "payments": [PaymentResponse.model_validate(p).model_dump(mode="json") for p in payments],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_held_payouts(page, page_size, response_data)
    return PaymentListResponse(**response_data)


@router.post("/payments/{payment_id}/release", response_model=PaymentResponse)
async def release_payout(
    payment_id: int,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Release the vendor's 70% share. Only once, and only for paid payments."""
    payment = await payment_service.release_payout(db, sink, payment_id, admin)
    await invalidate_payout_cache()
    return payment
