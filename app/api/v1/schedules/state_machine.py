"""Swap request lifecycle: pending -> approved_by_head1 -> approved | rejected."""

from enum import Enum
from typing import Dict, Tuple

from app.core.enums import SwapRequestStatus
from app.core.exceptions import InvalidStateTransition


class SwapTrigger(str, Enum):
    FIRST_STEP_SAME_DEPARTMENT = "first_step_same_department"
    FIRST_STEP_CROSS_DEPARTMENT = "first_step_cross_department"
    FINAL = "final"
    FINAL_OVERRIDE = "final_override"
    REJECT = "reject"


TERMINAL_STATES = frozenset({SwapRequestStatus.APPROVED, SwapRequestStatus.REJECTED})

TRANSITIONS: Dict[Tuple[SwapRequestStatus, SwapTrigger], SwapRequestStatus] = {
    (SwapRequestStatus.PENDING, SwapTrigger.FIRST_STEP_SAME_DEPARTMENT): SwapRequestStatus.APPROVED,
    (SwapRequestStatus.PENDING, SwapTrigger.FIRST_STEP_CROSS_DEPARTMENT): SwapRequestStatus.APPROVED_BY_HEAD1,
    (SwapRequestStatus.APPROVED_BY_HEAD1, SwapTrigger.FINAL): SwapRequestStatus.APPROVED,
    # Admin / assistant manager may finalize without the first step
    (SwapRequestStatus.PENDING, SwapTrigger.FINAL_OVERRIDE): SwapRequestStatus.APPROVED,
    (SwapRequestStatus.APPROVED_BY_HEAD1, SwapTrigger.FINAL_OVERRIDE): SwapRequestStatus.APPROVED,
    (SwapRequestStatus.PENDING, SwapTrigger.REJECT): SwapRequestStatus.REJECTED,
    (SwapRequestStatus.APPROVED_BY_HEAD1, SwapTrigger.REJECT): SwapRequestStatus.REJECTED,
}

_ACTION_LABELS = {
    SwapTrigger.FIRST_STEP_SAME_DEPARTMENT: "first step approval",
    SwapTrigger.FIRST_STEP_CROSS_DEPARTMENT: "first step approval",
    SwapTrigger.FINAL: "final approval",
    SwapTrigger.FINAL_OVERRIDE: "final approval",
    SwapTrigger.REJECT: "rejection",
}


def next_status(current: SwapRequestStatus, trigger: SwapTrigger) -> SwapRequestStatus:
    """Target state for (current, trigger); raises InvalidStateTransition reporting the current status."""
    target = TRANSITIONS.get((current, trigger))
    if target is not None:
        return target
    if current in TERMINAL_STATES:
        raise InvalidStateTransition(current.value)
    raise InvalidStateTransition(
        current.value,
        f"Request status is '{current.value}', cannot perform {_ACTION_LABELS[trigger]}.",
    )
