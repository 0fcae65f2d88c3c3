from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from capms.controllers.admin_controller import (
    list_users,
    create_user,
    update_user,
    delete_user,
    system_stats,
    list_audit_logs,
)
from capms.controllers.rule_controller import list_rules, create_rule, update_rule, delete_rule
from capms.core.database import get_db
from capms.core.dependencies import require_admin
from capms.core.document_store import DocumentStore, get_document_store
from capms.models.audit_log import AuditAction
from capms.models.user import UserRole
from capms.schemas.rule import RuleCreate, RuleUpdate, RuleOut
from capms.schemas.stats import AuditLogListOut, AuditLogOut, SystemStatsOut, TopStudent
from capms.schemas.user import LedgerCheckOut, UserCreate, UserListOut, UserOut, UserUpdate
from capms.services.ledger import ledger_check
from capms.services.scoping import Caller

router = APIRouter(prefix="/admin", tags=["Admin"])


# ─────────────────────────────────────────────────────────────
# Rules
# ─────────────────────────────────────────────────────────────
@router.get("/rules", response_model=list[RuleOut])
async def rules(
    active_only: bool = Query(False, description="If true, only active rules"),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await list_rules(db, active_only)


@router.post("/rules", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
async def add_rule(
    payload: RuleCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await create_rule(db, caller, payload)


@router.patch("/rules/{rule_id}", response_model=RuleOut)
async def patch_rule(
    rule_id: int,
    payload: RuleUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await update_rule(db, caller, rule_id, payload)


@router.delete("/rules/{rule_id}")
async def remove_rule(
    rule_id: int,
    hard: bool = Query(False, description="Hard delete instead of disabling"),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await delete_rule(db, caller, rule_id, hard)


# ─────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────
@router.get("/users", response_model=UserListOut)
async def users(
    role: UserRole | None = Query(None),
    branch: str | None = Query(None),
    semester: str | None = Query(None),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    items, total = await list_users(db, role, branch, semester, limit, offset)
    return UserListOut(
        items=[UserOut.model_validate(u) for u in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def add_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await create_user(db, caller, payload)


@router.patch("/users/{user_id}", response_model=UserOut)
async def patch_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await update_user(db, caller, user_id, payload)


@router.delete("/users/{user_id}")
async def remove_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    caller: Caller = Depends(require_admin),
):
    return await delete_user(db, store, caller, user_id)


@router.get("/users/{user_id}/ledger-check", response_model=LedgerCheckOut)
async def user_ledger_check(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await ledger_check(db, user_id)


# ─────────────────────────────────────────────────────────────
# Analytics + audit
# ─────────────────────────────────────────────────────────────
@router.get("/stats", response_model=SystemStatsOut)
async def stats(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    data = await system_stats(db)
    data["top_students"] = [TopStudent.model_validate(u) for u in data["top_students"]]
    return SystemStatsOut(**data)


@router.get("/audit-logs", response_model=AuditLogListOut)
async def audit_logs(
    action: AuditAction | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    items, total = await list_audit_logs(db, action, limit, offset)
    return AuditLogListOut(
        items=[AuditLogOut.model_validate(a) for a in items],
        total=total,
        limit=limit,
        offset=offset,
    )
