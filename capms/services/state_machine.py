"""Activity lifecycle as an explicit transition table.

Kept free of storage so guards can be checked in isolation. The table is the
only place that decides whether an action is legal from a given status.
"""

import enum

from capms.models.activity import ActivityStatus
from capms.services.errors import StateConflictError


class ActivityAction(str, enum.Enum):
    APPROVE = "approve"
    EDIT = "edit"
    REJECT = "reject"
    REQUEST_CORRECTION = "request_correction"


PENDING = ActivityStatus.PENDING
APPROVED = ActivityStatus.APPROVED
REJECTED = ActivityStatus.REJECTED
CORRECTION_NEEDED = ActivityStatus.CORRECTION_NEEDED

INITIAL_STATUS = PENDING

TRANSITIONS: dict[tuple[ActivityStatus, ActivityAction], ActivityStatus] = {
    (PENDING, ActivityAction.APPROVE): APPROVED,
    (CORRECTION_NEEDED, ActivityAction.APPROVE): APPROVED,
    (APPROVED, ActivityAction.EDIT): APPROVED,
    (PENDING, ActivityAction.REJECT): REJECTED,
    (CORRECTION_NEEDED, ActivityAction.REJECT): REJECTED,
    (PENDING, ActivityAction.REQUEST_CORRECTION): CORRECTION_NEEDED,
    (CORRECTION_NEEDED, ActivityAction.REQUEST_CORRECTION): CORRECTION_NEEDED,
}

_CONFLICT_MESSAGES = {
    ActivityAction.APPROVE: "Activity already processed",
    ActivityAction.REJECT: "Activity already processed",
    ActivityAction.REQUEST_CORRECTION: "Activity already processed",
    ActivityAction.EDIT: "Can only edit approved activities",
}


def next_status(current: ActivityStatus, action: ActivityAction) -> ActivityStatus:
    """Return the status ``action`` leads to, or raise StateConflictError."""
    target = TRANSITIONS.get((ActivityStatus(current), action))
    if target is None:
        raise StateConflictError(
            f"{_CONFLICT_MESSAGES[action]} (status is {ActivityStatus(current).value})"
        )
    return target


def affects_ledger(action: ActivityAction) -> bool:
    # rejections and correction requests never move points
    return action in (ActivityAction.APPROVE, ActivityAction.EDIT)
