from capms.models.activity import ActivityLevel, ActivityPosition, ActivityType
from capms.models.rule import Rule, RulePosition
from capms.services.rule_resolver import lookup_position, pick_rule, resolve_points

from tests.factories import make_rule


def _rule(id, position, points, is_active=True):
    return Rule(
        id=id,
        activity_type=ActivityType.HACKATHON,
        level=ActivityLevel.STATE,
        position=RulePosition(position),
        points=points,
        is_active=is_active,
    )


def test_lookup_position_defaults_to_participant():
    assert lookup_position(None) == "participant"
    assert lookup_position("") == "participant"
    assert lookup_position(ActivityPosition.NONE) == "participant"
    assert lookup_position("First") == "first"


def test_exact_position_beats_any():
    rules = [_rule(1, "any", 5), _rule(2, "first", 20)]
    assert pick_rule(rules, "first").points == 20
    assert pick_rule(rules, "second").points == 5


def test_ties_go_to_the_oldest_rule():
    rules = [_rule(7, "first", 30), _rule(3, "first", 15), _rule(4, "any", 1)]
    assert pick_rule(rules, "first").id == 3


def test_inactive_rules_are_ignored():
    rules = [_rule(1, "first", 20, is_active=False), _rule(2, "any", 5)]
    assert pick_rule(rules, "first").points == 5
    assert pick_rule([_rule(1, "any", 5, is_active=False)], "first") is None


async def test_resolve_points_prefers_exact_match(db):
    await make_rule(db, "hackathon", "state", "any", 10)
    await make_rule(db, "hackathon", "state", "first", 20)
    await make_rule(db, "hackathon", "national", "first", 50)

    assert await resolve_points(db, ActivityType.HACKATHON, ActivityLevel.STATE, "first") == 20
    assert await resolve_points(db, ActivityType.HACKATHON, ActivityLevel.STATE, "second") == 10
    assert await resolve_points(db, ActivityType.HACKATHON, ActivityLevel.STATE, None) == 10


async def test_resolve_points_zero_without_rule(db):
    await make_rule(db, "sports", "college", "any", 5, is_active=False)
    assert await resolve_points(db, ActivityType.SPORTS, ActivityLevel.COLLEGE, "first") == 0
    assert await resolve_points(db, ActivityType.NSS, ActivityLevel.STATE, "first") == 0


async def test_participant_rule_matches_unplaced_submissions(db):
    await make_rule(db, "workshop", "college", "participant", 4)
    await make_rule(db, "workshop", "college", "any", 2)
    assert await resolve_points(db, ActivityType.WORKSHOP, ActivityLevel.COLLEGE, ActivityPosition.NONE) == 4
