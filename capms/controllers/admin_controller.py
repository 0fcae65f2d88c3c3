import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, func, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from capms.core.document_store import DocumentStore, discard_quietly
from capms.core.security import hash_password
from capms.models.activity import Activity, ActivityStatus
from capms.models.audit_log import AuditLog, AuditAction
from capms.models.notification import Notification
from capms.models.user import User, UserRole
from capms.schemas.user import UserCreate, UserUpdate
from capms.services import audit
from capms.services.errors import NotFoundError, ValidationError
from capms.services.scoping import Caller

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────
async def list_users(
    db: AsyncSession,
    role: UserRole | None = None,
    branch: str | None = None,
    semester: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role)
    if branch:
        stmt = stmt.where(User.branch == branch.strip().upper())
    if semester:
        stmt = stmt.where(User.semester == semester.strip().upper())

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset))
    return list(res.scalars().all()), int(total or 0)


async def create_user(db: AsyncSession, caller: Caller, payload: UserCreate) -> User:
    conds = [User.email == payload.email]
    if payload.registration_number:
        conds.append(User.registration_number == payload.registration_number)
    existing = await db.execute(select(User.id).where(or_(*conds)))
    if existing.first():
        raise ValidationError("User already exists")

    user = User(
        full_name=payload.full_name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        registration_number=payload.registration_number or None,
        role=payload.role,
        branch=payload.branch,
        semester=payload.semester or "S1",
        section=payload.section or "",
        dob=payload.dob,
        verified=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("User already exists")
    await db.refresh(user)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ADMIN_ACTION,
        target_type="User",
        target_id=user.id,
        description=f"Created {user.role.value}: {user.full_name}",
    )
    await db.refresh(user)
    return user


async def update_user(db: AsyncSession, caller: Caller, user_id: int, payload: UserUpdate) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)

    await db.commit()
    await db.refresh(user)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ADMIN_ACTION,
        target_type="User",
        target_id=user.id,
        description=f"Updated user: {user.full_name}",
    )
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, store: DocumentStore, caller: Caller, user_id: int) -> dict:
    """
    Hard delete. The user's activities go with them; their points are not
    moved anywhere else since the ledger lives on the deleted row.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.id == caller.user_id:
        raise ValidationError("Admins cannot delete their own account")

    name = user.full_name
    storage_ids = list(
        (await db.execute(select(Activity.doc_storage_id).where(Activity.student_id == user_id))).scalars().all()
    )

    await db.execute(delete(Activity).where(Activity.student_id == user_id))
    await db.execute(delete(Notification).where(Notification.recipient_id == user_id))
    await db.delete(user)
    await db.commit()
    logger.info("user %s deleted by %s with %d activities", user_id, caller.user_id, len(storage_ids))

    for sid in storage_ids:
        await discard_quietly(store, sid)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ADMIN_ACTION,
        target_type="User",
        target_id=user_id,
        description=f"Deleted user: {name}",
    )
    return {"ok": True, "deleted_activities": len(storage_ids)}


# ─────────────────────────────────────────────────────────────
# Analytics
# ─────────────────────────────────────────────────────────────
def _month_key(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m")
    return str(value)[:7]


async def system_stats(db: AsyncSession) -> dict:
    async def _count(stmt) -> int:
        return int((await db.execute(stmt)).scalar_one() or 0)

    total_students = await _count(select(func.count(User.id)).where(User.role == UserRole.STUDENT))
    total_teachers = await _count(select(func.count(User.id)).where(User.role == UserRole.TEACHER))
    total_activities = await _count(select(func.count(Activity.id)))
    pending = await _count(select(func.count(Activity.id)).where(Activity.status == ActivityStatus.PENDING))
    approved = await _count(select(func.count(Activity.id)).where(Activity.status == ActivityStatus.APPROVED))

    by_type = (
        await db.execute(
            select(Activity.activity_type, func.count(Activity.id)).group_by(Activity.activity_type)
        )
    ).all()

    # month bucketing done here so it works on any backend
    since = datetime.now(timezone.utc) - timedelta(days=183)
    created = (
        await db.execute(select(Activity.created_at).where(Activity.created_at >= since))
    ).scalars().all()
    months: dict[str, int] = {}
    for ts in created:
        key = _month_key(ts)
        months[key] = months.get(key, 0) + 1

    top = (
        await db.execute(
            select(User)
            .where(User.role == UserRole.STUDENT)
            .order_by(User.total_points.desc(), User.id.asc())
            .limit(10)
        )
    ).scalars().all()

    return {
        "total_students": total_students,
        "total_teachers": total_teachers,
        "total_activities": total_activities,
        "pending_activities": pending,
        "approved_activities": approved,
        "by_type": [{"key": t.value, "count": int(c)} for t, c in by_type],
        "by_month": [{"key": k, "count": months[k]} for k in sorted(months)],
        "top_students": list(top),
    }


async def list_audit_logs(
    db: AsyncSession,
    action: AuditAction | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    if action is not None:
        stmt = stmt.where(AuditLog.action == action.value)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).offset(offset))
    return list(res.scalars().all()), int(total or 0)
