from typing import Iterable

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from capms.models.activity import ActivityType, ActivityLevel, ActivityPosition
from capms.models.rule import Rule, RulePosition


def lookup_position(position: ActivityPosition | str | None) -> str:
    """Position used for rule lookup; empty/none counts as participant."""
    if position is None:
        return ActivityPosition.PARTICIPANT.value
    value = position.value if isinstance(position, ActivityPosition) else str(position).strip().lower()
    if not value or value == ActivityPosition.NONE.value:
        return ActivityPosition.PARTICIPANT.value
    return value


def pick_rule(rules: Iterable[Rule], position: str) -> Rule | None:
    """
    Choose the authoritative rule among active candidates.

    An exact position match beats an "any" rule; ties within the same
    specificity go to the oldest rule (lowest id).
    """
    exact = []
    fallback = []
    for r in rules:
        if not r.is_active:
            continue
        pos = r.position.value if isinstance(r.position, RulePosition) else str(r.position)
        if pos == position:
            exact.append(r)
        elif pos == RulePosition.ANY.value:
            fallback.append(r)

    for bucket in (exact, fallback):
        if bucket:
            return min(bucket, key=lambda r: r.id)
    return None


async def resolve_points(
    db: AsyncSession,
    activity_type: ActivityType,
    level: ActivityLevel,
    position: ActivityPosition | str | None = None,
) -> int:
    """Suggested points for a classification; 0 when no active rule matches."""
    pos = lookup_position(position)

    res = await db.execute(
        select(Rule).where(
            Rule.activity_type == ActivityType(activity_type),
            Rule.level == ActivityLevel(level),
            Rule.is_active == True,  # noqa: E712
            or_(Rule.position == RulePosition.ANY, Rule.position == RulePosition(pos)),
        )
    )
    rule = pick_rule(res.scalars().all(), pos)
    return int(rule.points) if rule else 0
