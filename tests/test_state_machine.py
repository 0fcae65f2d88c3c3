import pytest

from capms.models.activity import ActivityStatus
from capms.services.errors import StateConflictError
from capms.services.state_machine import (
    ActivityAction,
    INITIAL_STATUS,
    TRANSITIONS,
    affects_ledger,
    next_status,
)

PENDING = ActivityStatus.PENDING
APPROVED = ActivityStatus.APPROVED
REJECTED = ActivityStatus.REJECTED
CORRECTION = ActivityStatus.CORRECTION_NEEDED


def test_new_activities_start_pending():
    assert INITIAL_STATUS == PENDING


@pytest.mark.parametrize("source", [PENDING, CORRECTION])
def test_reviewable_statuses_accept_every_review_action(source):
    assert next_status(source, ActivityAction.APPROVE) == APPROVED
    assert next_status(source, ActivityAction.REJECT) == REJECTED
    assert next_status(source, ActivityAction.REQUEST_CORRECTION) == CORRECTION


def test_edit_only_from_approved():
    assert next_status(APPROVED, ActivityAction.EDIT) == APPROVED
    for source in (PENDING, REJECTED, CORRECTION):
        with pytest.raises(StateConflictError) as exc:
            next_status(source, ActivityAction.EDIT)
        assert "Can only edit approved activities" in exc.value.message


@pytest.mark.parametrize("action", [ActivityAction.APPROVE, ActivityAction.REJECT, ActivityAction.REQUEST_CORRECTION])
@pytest.mark.parametrize("source", [APPROVED, REJECTED])
def test_terminal_statuses_refuse_review_actions(source, action):
    assert (source, action) not in TRANSITIONS
    with pytest.raises(StateConflictError) as exc:
        next_status(source, action)
    assert exc.value.message.startswith("Activity already processed")


def test_rejected_is_terminal():
    assert not any(src == REJECTED for src, _ in TRANSITIONS)


def test_no_path_out_of_approved_except_edit():
    outgoing = {act for src, act in TRANSITIONS if src == APPROVED}
    assert outgoing == {ActivityAction.EDIT}


def test_approve_sources():
    assert {src for src, act in TRANSITIONS if act == ActivityAction.APPROVE} == {PENDING, CORRECTION}


def test_only_approve_and_edit_move_points():
    assert affects_ledger(ActivityAction.APPROVE)
    assert affects_ledger(ActivityAction.EDIT)
    assert not affects_ledger(ActivityAction.REJECT)
    assert not affects_ledger(ActivityAction.REQUEST_CORRECTION)


def test_accepts_raw_status_strings():
    assert next_status("pending", ActivityAction.APPROVE) == APPROVED
