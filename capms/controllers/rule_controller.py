import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.audit_log import AuditAction
from capms.models.rule import Rule
from capms.schemas.rule import RuleCreate, RuleUpdate
from capms.services import audit
from capms.services.errors import NotFoundError
from capms.services.scoping import Caller

logger = logging.getLogger(__name__)


async def list_rules(db: AsyncSession, active_only: bool = False) -> list[Rule]:
    stmt = select(Rule)
    if active_only:
        stmt = stmt.where(Rule.is_active == True)  # noqa: E712
    stmt = stmt.order_by(Rule.activity_type.asc(), Rule.level.asc(), Rule.id.asc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def _get_rule(db: AsyncSession, rule_id: int) -> Rule:
    rule = await db.get(Rule, rule_id)
    if rule is None:
        raise NotFoundError("Rule not found")
    return rule


async def create_rule(db: AsyncSession, caller: Caller, payload: RuleCreate) -> Rule:
    rule = Rule(
        activity_type=payload.activity_type,
        level=payload.level,
        position=payload.position,
        points=payload.points,
        description=payload.description or "",
        is_active=payload.is_active,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.RULE_CREATE,
        target_type="Rule",
        target_id=rule.id,
        description=f"Created rule: {rule.activity_type.value} - {rule.level.value} - {rule.points} points",
    )
    await db.refresh(rule)
    return rule


async def update_rule(db: AsyncSession, caller: Caller, rule_id: int, payload: RuleUpdate) -> Rule:
    rule = await _get_rule(db, rule_id)

    # existing activities keep their points_suggested snapshot
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(rule, field, value)

    await db.commit()
    await db.refresh(rule)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.RULE_UPDATE,
        target_type="Rule",
        target_id=rule.id,
        description=f"Updated rule: {rule.activity_type.value} - {rule.level.value}",
    )
    await db.refresh(rule)
    return rule


async def delete_rule(db: AsyncSession, caller: Caller, rule_id: int, hard: bool = False) -> dict:
    rule = await _get_rule(db, rule_id)
    label = f"{rule.activity_type.value} - {rule.level.value}"

    if hard:
        await db.delete(rule)
        description = f"Deleted rule: {label}"
    else:
        rule.is_active = False
        description = f"Disabled rule: {label}"
    await db.commit()
    logger.info("rule %s %s by %s", rule_id, "deleted" if hard else "disabled", caller.user_id)

    await audit.record(
        db,
        actor_id=caller.user_id,
        action=AuditAction.RULE_DELETE,
        target_type="Rule",
        target_id=rule_id,
        description=description,
    )
    return {"ok": True, "hard": hard}
