from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.teacher_controller import (
    subscribe_classes,
    my_classes,
    list_students,
    dashboard_stats,
    list_unverified_profiles,
    verify_profile,
    send_reminder,
)
from capms.core.database import get_db
from capms.core.dependencies import require_reviewer, require_teacher
from capms.schemas.activity import ActivityWithStudentOut
from capms.schemas.notification import ReminderIn, ReminderOut
from capms.schemas.stats import TeacherDashboardOut
from capms.schemas.user import ClassOut, SubscribeClassesIn, UserListOut, UserOut
from capms.services.scoping import Caller

router = APIRouter(prefix="/teacher", tags=["Teacher"])


@router.post("/subscribe-classes", response_model=list[ClassOut])
async def subscribe(
    payload: SubscribeClassesIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_teacher),
):
    return await subscribe_classes(db, caller, payload.classes)


@router.get("/my-classes", response_model=list[ClassOut])
async def classes(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_teacher),
):
    return await my_classes(db, caller)


@router.get("/students", response_model=UserListOut)
async def students(
    branch: str | None = Query(None),
    semester: str | None = Query(None),
    section: str | None = Query(None),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    items, total = await list_students(db, caller, branch, semester, section, limit, offset)
    return UserListOut(
        items=[UserOut.model_validate(u) for u in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/dashboard-stats", response_model=TeacherDashboardOut)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    stats = await dashboard_stats(db, caller)
    stats["recent_activities"] = [
        ActivityWithStudentOut.model_validate(a) for a in stats["recent_activities"]
    ]
    return TeacherDashboardOut(**stats)


@router.get("/unverified-profiles", response_model=UserListOut)
async def unverified_profiles(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    items, total = await list_unverified_profiles(db, caller, limit, offset)
    return UserListOut(
        items=[UserOut.model_validate(u) for u in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/students/{student_id}/verify-profile", response_model=UserOut)
async def verify_student_profile(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    return await verify_profile(db, caller, student_id)


@router.post("/send-reminder", response_model=ReminderOut)
async def reminder(
    payload: ReminderIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    sent = await send_reminder(db, caller, payload)
    return ReminderOut(sent=sent)
