from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.activity_controller import (
    submit_activity,
    list_my_activities,
    list_pending,
    get_activity,
    approve_activity,
    edit_approved_activity,
    reject_activity,
    request_correction,
    get_student_stats,
)
from capms.core.database import get_db
from capms.core.dependencies import get_caller, require_reviewer
from capms.core.document_store import DocumentStore, get_document_store
from capms.models.activity import ActivityType
from capms.schemas.activity import (
    ActivitySubmitIn,
    ActivityOut,
    ActivityWithStudentOut,
    ActivityListOut,
    ApproveIn,
    EditApprovedIn,
    RejectIn,
    CorrectionIn,
    StudentStatsOut,
)
from capms.services.scoping import Caller

router = APIRouter(prefix="/activity", tags=["Activity"])


def _page(items, total: int, limit: int, offset: int) -> ActivityListOut:
    return ActivityListOut(
        items=[ActivityWithStudentOut.model_validate(a) for a in items],
        total=total,
        limit=limit,
        offset=offset,
    )


# ─────────────────────────────────────────────────────────────
# Submission + own activities
# ─────────────────────────────────────────────────────────────
@router.post("/upload", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
async def upload_activity(
    payload: ActivitySubmitIn,
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    caller: Caller = Depends(get_caller),
):
    return await submit_activity(db, store, caller, payload)


@router.get("/my", response_model=ActivityListOut)
async def my_activities(
    status_filter: str | None = Query(None, alias="status", description="pending / approved / rejected / correction_needed"),
    activity_type: ActivityType | None = Query(None, alias="type"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    items, total = await list_my_activities(db, caller, status_filter, activity_type, limit, offset)
    return _page(items, total, limit, offset)


@router.get("/stats/me", response_model=StudentStatsOut)
async def my_stats(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return await get_student_stats(db, caller, caller.user_id)


@router.get("/stats/{student_id}", response_model=StudentStatsOut)
async def student_stats(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return await get_student_stats(db, caller, student_id)


# ─────────────────────────────────────────────────────────────
# Review queue (teacher scoped, admin unscoped)
# ─────────────────────────────────────────────────────────────
@router.get("/pending", response_model=ActivityListOut)
async def pending_activities(
    status_filter: str | None = Query("pending", alias="status", description="Use 'all' for every status"),
    activity_type: ActivityType | None = Query(None, alias="type"),
    branch: str | None = Query(None),
    semester: str | None = Query(None),
    section: str | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    items, total = await list_pending(
        db,
        caller,
        status=status_filter,
        activity_type=activity_type,
        branch=branch,
        semester=semester,
        section=section,
        limit=limit,
        offset=offset,
    )
    return _page(items, total, limit, offset)


@router.get("/{activity_id}", response_model=ActivityWithStudentOut)
async def activity_detail(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return await get_activity(db, caller, activity_id)


@router.post("/{activity_id}/approve", response_model=ActivityOut)
async def approve(
    activity_id: int,
    payload: ApproveIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    return await approve_activity(db, caller, activity_id, payload.points, payload.comments)


@router.put("/{activity_id}", response_model=ActivityOut)
async def edit_approved(
    activity_id: int,
    payload: EditApprovedIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    return await edit_approved_activity(db, caller, activity_id, payload.points, payload.comments)


@router.post("/{activity_id}/reject", response_model=ActivityOut)
async def reject(
    activity_id: int,
    payload: RejectIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    return await reject_activity(db, caller, activity_id, payload.reason)


@router.post("/{activity_id}/correction", response_model=ActivityOut)
async def correction(
    activity_id: int,
    payload: CorrectionIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_reviewer),
):
    return await request_correction(db, caller, activity_id, payload.comments)
