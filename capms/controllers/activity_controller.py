"""Activity approval engine: submission, review transitions and stats.

Each transition is one transactional unit: a conditional status UPDATE keyed
on the status the guard saw, plus the ledger credit, committed together.
Notifications and audit records are written afterwards and may be dropped.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from capms.core.config import settings
from capms.core.document_store import DocumentStore, discard_quietly
from capms.models.activity import Activity, ActivityPosition, ActivityStatus, ActivityType
from capms.models.audit_log import AuditAction
from capms.models.notification import NotificationType
from capms.models.user import User, UserRole
from capms.schemas.activity import ActivitySubmitIn
from capms.services import audit, ledger, notifier
from capms.services.errors import (
    AccessDeniedError,
    DependencyError,
    EngineError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from capms.services.rule_resolver import resolve_points
from capms.services.scoping import AccessScope, Caller
from capms.services.state_machine import ActivityAction, INITIAL_STATUS, affects_ledger, next_status

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _link(activity_id: int) -> str:
    return f"/activities/{activity_id}"


def parse_status_filter(status: str | None) -> ActivityStatus | None:
    """``None``/``"all"`` means no filter."""
    if not status or status == "all":
        return None
    try:
        return ActivityStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status}")


# ─────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────
async def _submission_target(db: AsyncSession, caller: Caller, student_id: int | None) -> User:
    if student_id is None or student_id == caller.user_id:
        if caller.role != UserRole.STUDENT:
            raise ValidationError("student_id is required when submitting on a student's behalf")
        student = await db.get(User, caller.user_id)
        if student is None:
            raise NotFoundError("Student not found")
        return student

    if not caller.is_reviewer:
        raise AccessDeniedError("Students can only submit their own activities")

    student = await db.get(User, student_id)
    if student is None or student.role != UserRole.STUDENT:
        raise ValidationError("Invalid student")
    AccessScope.for_caller(caller).ensure_allows(student)
    return student


async def submit_activity(
    db: AsyncSession,
    store: DocumentStore,
    caller: Caller,
    payload: ActivitySubmitIn,
) -> Activity:
    event_name = (payload.event_name or "").strip()
    if not event_name:
        raise ValidationError("event_name is required")
    if payload.end_date and payload.end_date < payload.start_date:
        raise ValidationError("end_date cannot be before start_date")
    if not (payload.doc_base64 or "").strip():
        raise ValidationError("Document is required")

    student = await _submission_target(db, caller, payload.student_id)

    position = payload.position or ActivityPosition.NONE
    points_suggested = await resolve_points(db, payload.activity_type, payload.level, position)

    # no Activity row without a real document
    doc = await store.store(payload.doc_base64)

    activity = Activity(
        student_id=student.id,
        submitted_by_id=caller.user_id,
        submitted_by_role=caller.role.value,
        upload_mode=payload.upload_mode,
        activity_type=payload.activity_type,
        event_name=event_name,
        description=payload.description or "",
        level=payload.level,
        position=position,
        organization=payload.organization or "",
        start_date=payload.start_date,
        end_date=payload.end_date,
        points_suggested=points_suggested,
        points_assigned=0,
        status=INITIAL_STATUS,
        doc_url=doc.url,
        doc_storage_id=doc.storage_id,
    )

    try:
        db.add(activity)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        await discard_quietly(store, doc.storage_id)
        raise DependencyError("Could not save activity") from e

    await db.refresh(activity)
    logger.info(
        "activity %s submitted for student %s by %s %s (suggested %s)",
        activity.id, student.id, caller.role.value, caller.user_id, points_suggested,
    )

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ACTIVITY_CREATE,
        target_type="Activity",
        target_id=activity.id,
        description=f'Activity "{event_name}" created',
    )
    await db.refresh(activity)
    return activity


# ─────────────────────────────────────────────────────────────
# Review transitions
# ─────────────────────────────────────────────────────────────
async def _reviewable(db: AsyncSession, caller: Caller, activity_id: int) -> Activity:
    if not caller.is_reviewer:
        raise AccessDeniedError("Access denied. Teachers or Admins only.")

    res = await db.execute(
        select(Activity)
        .where(Activity.id == activity_id)
        .options(selectinload(Activity.student))
        .with_for_update()
    )
    activity = res.scalar_one_or_none()
    if activity is None:
        raise NotFoundError("Activity not found")

    AccessScope.for_caller(caller).ensure_allows(activity.student)
    return activity


async def _commit_transition(
    db: AsyncSession,
    activity: Activity,
    action: ActivityAction,
    expected_status: ActivityStatus,
    values: dict,
    ledger_delta: int = 0,
    expected_points: int | None = None,
) -> ActivityStatus:
    """
    Apply the status write and the ledger credit as one unit.

    The UPDATE only matches while the row still has the status (and, for
    edits, the points) the guard was evaluated against, so two racing
    reviewers cannot both credit the ledger.
    """
    target = next_status(expected_status, action)
    if ledger_delta and not affects_ledger(action):
        raise StateConflictError(f"{action.value} cannot change points")

    guards = [Activity.id == activity.id, Activity.status == expected_status]
    if expected_points is not None:
        guards.append(Activity.points_assigned == expected_points)

    try:
        res = await db.execute(
            update(Activity)
            .where(*guards)
            .values(updated_at=_utcnow(), status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise StateConflictError("Activity was modified by another reviewer")

        await ledger.apply_credit(db, activity.student_id, ledger_delta)
        await db.commit()
    except EngineError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise DependencyError("Could not save activity") from e

    await db.refresh(activity)
    return target


# Notifier and audit failures roll the session back, which expires every
# loaded instance. Everything they need is copied out of the activity first,
# and the activity is only touched again through db.refresh.

async def approve_activity(
    db: AsyncSession,
    caller: Caller,
    activity_id: int,
    points: int | None = None,
    comments: str | None = None,
) -> Activity:
    if points is not None and points < 0:
        raise ValidationError("points must be zero or positive")

    activity = await _reviewable(db, caller, activity_id)
    assigned = int(points) if points is not None else int(activity.points_suggested or 0)

    await _commit_transition(
        db,
        activity,
        ActivityAction.APPROVE,
        activity.status,
        values={
            "points_assigned": assigned,
            "teacher_comments": comments or "",
            "verified_by_id": caller.user_id,
            "verified_at": _utcnow(),
        },
        ledger_delta=assigned,
    )
    student_id, event_name = activity.student_id, activity.event_name
    logger.info("activity %s approved by %s with %s points", activity_id, caller.user_id, assigned)

    await notifier.notify(
        db,
        recipient_id=student_id,
        type=NotificationType.APPROVAL,
        title="Activity Approved!",
        message=f'Your activity "{event_name}" has been approved with {assigned} points.',
        link=_link(activity_id),
        sender_id=caller.user_id,
    )
    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ACTIVITY_APPROVE,
        target_type="Activity",
        target_id=activity_id,
        description=f"Approved activity with {assigned} points",
    )
    await db.refresh(activity)
    return activity


async def edit_approved_activity(
    db: AsyncSession,
    caller: Caller,
    activity_id: int,
    points: int | None = None,
    comments: str | None = None,
) -> Activity:
    if points is not None and points < 0:
        raise ValidationError("points must be zero or positive")

    activity = await _reviewable(db, caller, activity_id)
    old_points = int(activity.points_assigned or 0)
    new_points = int(points) if points is not None else old_points

    values = {"points_assigned": new_points}
    if comments is not None:
        values["teacher_comments"] = comments

    await _commit_transition(
        db,
        activity,
        ActivityAction.EDIT,
        activity.status,
        values=values,
        ledger_delta=new_points - old_points,
        expected_points=old_points,
    )
    logger.info("activity %s edited by %s: %s -> %s points", activity_id, caller.user_id, old_points, new_points)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ACTIVITY_EDIT,
        target_type="Activity",
        target_id=activity_id,
        description=f"Edited activity: {old_points} -> {new_points} points",
        meta={"old_points": old_points, "new_points": new_points},
    )
    await db.refresh(activity)
    return activity


async def reject_activity(
    db: AsyncSession,
    caller: Caller,
    activity_id: int,
    reason: str,
) -> Activity:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")

    activity = await _reviewable(db, caller, activity_id)

    await _commit_transition(
        db,
        activity,
        ActivityAction.REJECT,
        activity.status,
        values={
            "teacher_comments": reason,
            "verified_by_id": caller.user_id,
            "verified_at": _utcnow(),
        },
    )
    student_id, event_name = activity.student_id, activity.event_name
    logger.info("activity %s rejected by %s", activity_id, caller.user_id)

    await notifier.notify(
        db,
        recipient_id=student_id,
        type=NotificationType.REJECTION,
        title="Activity Rejected",
        message=f'Your activity "{event_name}" was rejected. Reason: {reason}',
        link=_link(activity_id),
        sender_id=caller.user_id,
    )
    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ACTIVITY_REJECT,
        target_type="Activity",
        target_id=activity_id,
        description=f"Rejected activity: {reason}",
    )
    await db.refresh(activity)
    return activity


async def request_correction(
    db: AsyncSession,
    caller: Caller,
    activity_id: int,
    comments: str,
) -> Activity:
    comments = (comments or "").strip()
    if not comments:
        raise ValidationError("Correction comments are required")

    activity = await _reviewable(db, caller, activity_id)

    await _commit_transition(
        db,
        activity,
        ActivityAction.REQUEST_CORRECTION,
        activity.status,
        values={"teacher_comments": comments},
    )
    student_id, event_name = activity.student_id, activity.event_name
    logger.info("correction requested on activity %s by %s", activity_id, caller.user_id)

    await notifier.notify(
        db,
        recipient_id=student_id,
        type=NotificationType.CORRECTION,
        title="Correction Needed",
        message=f'Your activity "{event_name}" needs correction: {comments}',
        link=_link(activity_id),
        sender_id=caller.user_id,
    )
    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.ACTIVITY_CORRECTION,
        target_type="Activity",
        target_id=activity_id,
        description=f"Requested correction: {comments}",
    )
    await db.refresh(activity)
    return activity


# ─────────────────────────────────────────────────────────────
# Reads
# ─────────────────────────────────────────────────────────────
async def get_activity(db: AsyncSession, caller: Caller, activity_id: int) -> Activity:
    res = await db.execute(
        select(Activity).where(Activity.id == activity_id).options(selectinload(Activity.student))
    )
    activity = res.scalar_one_or_none()
    if activity is None:
        raise NotFoundError("Activity not found")

    AccessScope.for_caller(caller).ensure_allows(activity.student)
    return activity


async def _paged(db: AsyncSession, stmt, limit: int, offset: int) -> tuple[list[Activity], int]:
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(
        stmt.options(selectinload(Activity.student))
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), int(total or 0)


async def list_my_activities(
    db: AsyncSession,
    caller: Caller,
    status: str | None = None,
    activity_type: ActivityType | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Activity], int]:
    stmt = select(Activity).where(Activity.student_id == caller.user_id)
    st = parse_status_filter(status)
    if st is not None:
        stmt = stmt.where(Activity.status == st)
    if activity_type is not None:
        stmt = stmt.where(Activity.activity_type == activity_type)
    return await _paged(db, stmt, limit, offset)


async def list_pending(
    db: AsyncSession,
    caller: Caller,
    status: str | None = "pending",
    activity_type: ActivityType | None = None,
    branch: str | None = None,
    semester: str | None = None,
    section: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Activity], int]:
    if not caller.is_reviewer:
        raise AccessDeniedError("Access denied. Teachers or Admins only.")

    scope = AccessScope.for_caller(caller)
    stmt = (
        select(Activity)
        .join(User, Activity.student_id == User.id)
        .where(scope.narrowed(branch, semester, section))
    )
    st = parse_status_filter(status)
    if st is not None:
        stmt = stmt.where(Activity.status == st)
    if activity_type is not None:
        stmt = stmt.where(Activity.activity_type == activity_type)
    return await _paged(db, stmt, limit, offset)


async def get_student_stats(db: AsyncSession, caller: Caller, student_id: int) -> dict:
    # total_points is written with bulk UPDATEs, so bypass the identity map
    student = await db.get(User, student_id, populate_existing=True)
    if student is None or student.role != UserRole.STUDENT:
        raise NotFoundError("Student not found")
    AccessScope.for_caller(caller).ensure_allows(student)

    status_rows = (
        await db.execute(
            select(Activity.status, func.count(Activity.id), func.coalesce(func.sum(Activity.points_assigned), 0))
            .where(Activity.student_id == student_id)
            .group_by(Activity.status)
        )
    ).all()

    type_rows = (
        await db.execute(
            select(Activity.activity_type, func.count(Activity.id), func.coalesce(func.sum(Activity.points_assigned), 0))
            .where(Activity.student_id == student_id, Activity.status == ActivityStatus.APPROVED)
            .group_by(Activity.activity_type)
        )
    ).all()

    required = int(settings.REQUIRED_TOTAL_POINTS)
    total = int(student.total_points or 0)
    progress = 100.0 if required <= 0 else min(100.0, round(total * 100.0 / required, 1))

    return {
        "student_id": student.id,
        "by_status": [
            {
                "status": st,
                "count": int(count),
                # assigned points only count once approved
                "points": int(points) if st == ActivityStatus.APPROVED else 0,
            }
            for st, count, points in status_rows
        ],
        "by_type": [
            {"activity_type": t, "count": int(count), "points": int(points)}
            for t, count, points in type_rows
        ],
        "total_points": total,
        "required_points": required,
        "progress": progress,
    }
