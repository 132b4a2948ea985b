"""
Notification delivery and the notification inbox.

DELIVERY SEMANTICS
==================
Booking and payment operations commit their own changes first and only
then hand a NotificationMessage to the injected sink through deliver().
deliver() is the error boundary: any failure is logged, counted and
dropped, so a broken notification store can never fail or roll back the
business operation that triggered it.

Delivery is at-most-once and best-effort. There is no retry queue; a
retry without idempotency keys would risk duplicate notifications.

DatabaseNotificationSink writes each notification in its own session,
separate from the request's unit of work.
"""

from datetime import datetime, timezone

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.core.metrics import record_notification
from app.db.session import get_session_factory
from app.models.notification import Notification
from app.services.interfaces.notification_sink import NotificationMessage, NotificationSink

logger = get_logger(__name__)


class DatabaseNotificationSink(NotificationSink):
    """Stores notifications in the notifications table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def notify(self, message: NotificationMessage) -> None:
        async with self.session_factory() as session:
            session.add(
                Notification(
                    user_id=message.user_id,
                    type=message.type,
                    title=message.title,
                    message=message.message,
                    action_url=message.action_url,
                    data=message.data or None,
                    created_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()


def get_notification_sink() -> NotificationSink:
    return DatabaseNotificationSink(get_session_factory())


async def deliver(sink: NotificationSink, message: NotificationMessage) -> bool:
    """Send one notification; never raises. Returns whether it was delivered."""
    try:
        await sink.notify(message)
    except Exception as e:
        logger.error(
            "notification_delivery_failed",
            user_id=message.user_id,
            type=message.type,
            error=str(e),
        )
        record_notification(message.type, delivered=False)
        return False

    logger.debug("notification_delivered", user_id=message.user_id, type=message.type)
    record_notification(message.type, delivered=True)
    return True


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int, int]:
    """Return (page of notifications, total matching, unread count)."""
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    unread = await count_unread(db, user_id)

    result = await db.execute(
        query
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total, unread


async def count_unread(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar()


async def mark_as_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    # Someone else's notification looks the same as a missing one
    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    await db.flush()
    return notification


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.flush()
    logger.info("notifications_marked_read", user_id=user_id, count=result.rowcount)
    return result.rowcount
