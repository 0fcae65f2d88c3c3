from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.audit_log import AuditAction
from capms.models.notification import NotificationType
from capms.models.user import User, UserRole
from capms.schemas.user import ProfileUpdate
from capms.services import audit, notifier
from capms.services.errors import AccessDeniedError, NotFoundError
from capms.services.scoping import AccessScope, Caller, teachers_covering


async def update_profile(db: AsyncSession, user: User, payload: ProfileUpdate) -> User:
    """
    Students may change semester/section/phone. Any such change on a verified
    student profile sends it back to the teacher verification queue.
    """
    changed = {}
    if payload.semester and payload.semester != user.semester:
        changed["semester"] = payload.semester
    if payload.section is not None and payload.section != user.section:
        changed["section"] = payload.section
    if payload.phone is not None and payload.phone != user.phone:
        changed["phone"] = payload.phone

    if not changed:
        return user

    was_verified = user.role == UserRole.STUDENT and user.profile_verified
    for field, value in changed.items():
        setattr(user, field, value)
    if was_verified:
        user.profile_verified = False
        user.profile_verified_by_id = None
        user.profile_verified_at = None
    await db.commit()
    await db.refresh(user)
    user_id = user.id

    if was_verified:
        teachers = (
            await db.execute(select(User).where(User.role == UserRole.TEACHER))
        ).scalars().all()
        recipients = [t.id for t in teachers_covering(user, teachers)]
        await notifier.notify_many(
            db,
            recipients,
            type=NotificationType.PROFILE_UPDATE,
            title="Student Profile Updated",
            message=f"{user.full_name} ({user.registration_number or user.email}) has updated their profile. Please re-verify.",
            sender_id=user_id,
        )

    await audit.record(
        db,
        actor_id=user_id,
        action=AuditAction.PROFILE_UPDATE,
        target_type="User",
        target_id=user_id,
        description=f"Profile updated: {', '.join(sorted(changed))}",
    )
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, caller: Caller, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if caller.role == UserRole.ADMIN or caller.user_id == user.id:
        return user
    if caller.role == UserRole.STUDENT:
        raise AccessDeniedError()

    AccessScope.for_caller(caller).ensure_allows(user)
    return user
