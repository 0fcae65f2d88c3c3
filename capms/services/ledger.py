"""Incremental maintenance of ``User.total_points``.

Callers apply a credit inside the same transaction as the activity status
write and commit both together. The full sum is only recomputed for
diagnostics, never on the write path.
"""

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.activity import Activity, ActivityStatus
from capms.models.user import User, UserRole
from capms.services.errors import NotFoundError


async def apply_credit(db: AsyncSession, student_id: int, delta: int) -> None:
    """Add ``delta`` to a student's total as a single atomic UPDATE."""
    if not delta:
        return
    res = await db.execute(
        update(User)
        .where(User.id == student_id, User.role == UserRole.STUDENT)
        .values(total_points=User.total_points + int(delta))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise NotFoundError("Student not found")


async def approved_sum(db: AsyncSession, student_id: int) -> int:
    res = await db.execute(
        select(func.coalesce(func.sum(Activity.points_assigned), 0)).where(
            Activity.student_id == student_id,
            Activity.status == ActivityStatus.APPROVED,
        )
    )
    return int(res.scalar_one() or 0)


async def ledger_check(db: AsyncSession, student_id: int) -> dict:
    """Compare the stored total against the recomputed one."""
    student = await db.get(User, student_id, populate_existing=True)
    if not student or student.role != UserRole.STUDENT:
        raise NotFoundError("Student not found")

    expected = await approved_sum(db, student_id)
    stored = int(student.total_points or 0)
    return {
        "student_id": student_id,
        "stored_total": stored,
        "expected_total": expected,
        "consistent": stored == expected,
    }
