from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.notification import Notification
from capms.services.errors import NotFoundError
from capms.services.scoping import Caller


async def list_notifications(
    db: AsyncSession,
    caller: Caller,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    stmt = select(Notification).where(Notification.recipient_id == caller.user_id)
    if unread_only:
        stmt = stmt.where(Notification.read == False)  # noqa: E712

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    unread = (
        await db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == caller.user_id,
                Notification.read == False,  # noqa: E712
            )
        )
    ).scalar_one()

    res = await db.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).offset(offset)
    )
    return {
        "items": list(res.scalars().all()),
        "unread_count": int(unread or 0),
        "total": int(total or 0),
    }


async def mark_read(db: AsyncSession, caller: Caller, notification_id: int) -> Notification:
    res = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == caller.user_id,
        )
    )
    n = res.scalar_one_or_none()
    if n is None:
        raise NotFoundError("Notification not found")

    n.read = True
    await db.commit()
    await db.refresh(n)
    return n


async def mark_all_read(db: AsyncSession, caller: Caller) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == caller.user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return int(res.rowcount or 0)
