import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.audit_log import AuditLog, AuditAction

logger = logging.getLogger(__name__)


async def record(
    db: AsyncSession,
    actor_id: int,
    action: AuditAction,
    target_type: str,
    target_id: int | None = None,
    description: str = "",
    meta: dict | None = None,
) -> None:
    """Append an audit record. Best-effort: failures are logged, not raised."""
    try:
        db.add(
            AuditLog(
                actor_id=actor_id,
                action=AuditAction(action).value,
                target_type=target_type,
                target_id=target_id,
                description=description,
                meta=meta or {},
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("audit record %s on %s:%s dropped", action, target_type, target_id, exc_info=True)
