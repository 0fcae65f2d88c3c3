import logging
from datetime import datetime, timezone

from sqlalchemy import select, func, delete, exists
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from capms.core.config import settings, BRANCHES, SEMESTERS, SECTIONS
from capms.models.activity import Activity, ActivityStatus
from capms.models.audit_log import AuditAction
from capms.models.notification import NotificationType
from capms.models.user import User, UserRole, SubscribedClass
from capms.schemas.notification import ReminderIn
from capms.schemas.user import ClassIn
from capms.services import audit, notifier
from capms.services.errors import NotFoundError, ValidationError
from capms.services.scoping import AccessScope, Caller

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Class subscriptions
# ─────────────────────────────────────────────────────────────
def _validate_class(c: ClassIn) -> None:
    if not c.branch or not c.semester:
        raise ValidationError("Each class must have branch and semester")
    if c.branch not in BRANCHES:
        raise ValidationError(f"Invalid branch: {c.branch}")
    if c.semester not in SEMESTERS:
        raise ValidationError(f"Invalid semester: {c.semester}")
    if c.section and c.section not in SECTIONS:
        raise ValidationError(f"Invalid section: {c.section}")


async def subscribe_classes(db: AsyncSession, caller: Caller, classes: list[ClassIn]) -> list[SubscribedClass]:
    if not classes:
        raise ValidationError("Please select at least one class")
    for c in classes:
        _validate_class(c)

    # replace the whole set; duplicates collapse
    unique = {(c.branch, c.semester, c.section or "") for c in classes}

    await db.execute(delete(SubscribedClass).where(SubscribedClass.teacher_id == caller.user_id))
    rows = [
        SubscribedClass(teacher_id=caller.user_id, branch=b, semester=s, section=sec)
        for (b, s, sec) in sorted(unique)
    ]
    db.add_all(rows)
    await db.commit()

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.CLASS_SUBSCRIBE,
        target_type="User",
        target_id=caller.user_id,
        description=f"Subscribed to {len(rows)} classes",
    )
    return await my_classes(db, caller)


async def my_classes(db: AsyncSession, caller: Caller) -> list[SubscribedClass]:
    res = await db.execute(
        select(SubscribedClass)
        .where(SubscribedClass.teacher_id == caller.user_id)
        .order_by(SubscribedClass.branch, SubscribedClass.semester, SubscribedClass.section)
    )
    return list(res.scalars().all())


# ─────────────────────────────────────────────────────────────
# Scoped student views
# ─────────────────────────────────────────────────────────────
async def list_students(
    db: AsyncSession,
    caller: Caller,
    branch: str | None = None,
    semester: str | None = None,
    section: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    clause = AccessScope.for_caller(caller).narrowed(branch, semester, section)

    total = (await db.execute(select(func.count(User.id)).where(clause))).scalar_one()
    res = await db.execute(
        select(User)
        .where(clause)
        .order_by(User.registration_number.asc(), User.id.asc())
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), int(total or 0)


async def dashboard_stats(db: AsyncSession, caller: Caller) -> dict:
    scope = AccessScope.for_caller(caller)
    student_ids = select(User.id).where(scope.student_clause()).scalar_subquery()

    total_students = (
        await db.execute(select(func.count(User.id)).where(scope.student_clause()))
    ).scalar_one()

    counts = dict(
        (
            await db.execute(
                select(Activity.status, func.count(Activity.id))
                .where(Activity.student_id.in_(student_ids))
                .group_by(Activity.status)
            )
        ).all()
    )

    recent = (
        await db.execute(
            select(Activity)
            .where(Activity.student_id.in_(student_ids))
            .options(selectinload(Activity.student))
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(5)
        )
    ).scalars().all()

    return {
        "total_students": int(total_students or 0),
        "pending_activities": int(counts.get(ActivityStatus.PENDING, 0)),
        "approved_activities": int(counts.get(ActivityStatus.APPROVED, 0)),
        "rejected_activities": int(counts.get(ActivityStatus.REJECTED, 0)),
        "recent_activities": list(recent),
    }


# ─────────────────────────────────────────────────────────────
# Profile verification queue
# ─────────────────────────────────────────────────────────────
async def list_unverified_profiles(
    db: AsyncSession,
    caller: Caller,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    clause = AccessScope.for_caller(caller).student_clause()
    stmt = select(User).where(clause, User.profile_verified == False)  # noqa: E712

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset))
    return list(res.scalars().all()), int(total or 0)


async def verify_profile(db: AsyncSession, caller: Caller, student_id: int) -> User:
    student = await db.get(User, student_id)
    if student is None or student.role != UserRole.STUDENT:
        raise NotFoundError("Student not found")
    AccessScope.for_caller(caller).ensure_allows(student)

    student.profile_verified = True
    student.profile_verified_by_id = caller.user_id
    student.profile_verified_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(student)
    student_name = student.full_name

    await notifier.notify(
        db,
        recipient_id=student_id,
        type=NotificationType.SYSTEM,
        title="Profile Verified",
        message="Your profile details have been verified.",
        sender_id=caller.user_id,
    )
    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.PROFILE_VERIFY,
        target_type="User",
        target_id=student_id,
        description=f"Verified profile of {student_name}",
    )
    await db.refresh(student)
    return student


# ─────────────────────────────────────────────────────────────
# Reminders
# ─────────────────────────────────────────────────────────────
async def send_reminder(db: AsyncSession, caller: Caller, payload: ReminderIn) -> int:
    subject = (payload.subject or "").strip()
    message = (payload.message or "").strip()
    if not subject or not message:
        raise ValidationError("Subject and message are required")

    scope = AccessScope.for_caller(caller)
    stmt = select(User.id).where(scope.student_clause())

    if payload.recipient_type:
        if payload.recipient_type == "low_points":
            stmt = stmt.where(User.total_points < settings.LOW_POINTS_THRESHOLD)
        elif payload.recipient_type == "no_activities":
            stmt = stmt.where(~exists().where(Activity.student_id == User.id))
    elif payload.recipients:
        # explicit ids are still limited to the caller's scope
        stmt = stmt.where(User.id.in_(payload.recipients))
    else:
        raise ValidationError("Please select recipients or recipient type")

    recipient_ids = list((await db.execute(stmt)).scalars().all())
    if not recipient_ids:
        raise ValidationError("No valid recipients found")

    sent = await notifier.notify_many(
        db,
        recipient_ids,
        type=NotificationType.REMINDER,
        title=subject,
        message=message[:200],
        sender_id=caller.user_id,
    )
    logger.info("reminder %r sent to %d students by %s", subject, sent, caller.user_id)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.SEND_REMINDER,
        target_type="Notification",
        description=f"Sent reminder to {sent} students: {subject}",
    )
    return sent
