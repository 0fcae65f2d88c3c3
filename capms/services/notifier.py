import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


async def notify(
    db: AsyncSession,
    recipient_id: int,
    type: NotificationType,
    title: str,
    message: str,
    link: str = "",
    sender_id: int | None = None,
) -> Notification | None:
    """
    Fire-and-forget notification.

    Runs after the transition it reports on has committed, so a failure here
    is logged and dropped instead of surfacing to the caller.
    """
    try:
        n = Notification(
            type=NotificationType(type).value,
            recipient_id=recipient_id,
            sender_id=sender_id,
            title=title,
            message=message,
            link=link or "",
        )
        db.add(n)
        await db.commit()
        return n
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("notification %s for user %s dropped", type, recipient_id, exc_info=True)
        return None


async def notify_many(
    db: AsyncSession,
    recipient_ids: list[int],
    type: NotificationType,
    title: str,
    message: str,
    sender_id: int | None = None,
) -> int:
    if not recipient_ids:
        return 0
    try:
        db.add_all(
            [
                Notification(
                    type=NotificationType(type).value,
                    recipient_id=rid,
                    sender_id=sender_id,
                    title=title,
                    message=message,
                )
                for rid in recipient_ids
            ]
        )
        await db.commit()
        return len(recipient_ids)
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("batch %s notification for %d users dropped", type, len(recipient_ids), exc_info=True)
        return 0
