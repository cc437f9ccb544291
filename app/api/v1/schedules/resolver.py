"""
Authorization policy for schedule swap requests and substitutions.

Pure functions over (actor, context): no database access. Callers load the
request row and resolve departments (orig_dept, target_dept, head1_dept) first.

SWAP:
  create        -> system_admin | assistant_manager | department_head
  approve first -> department_head of the original or target teacher's department
  approve final -> system_admin | assistant_manager (override), or the head of the
                   *other* department in a cross-department swap
  reject        -> system_admin | assistant_manager | involved department_head
  view          -> system_admin | assistant_manager | involved or requesting department_head
SUBSTITUTION:
  record/view   -> system_admin | assistant_manager | head of the original teacher's department
  cancel        -> as record, plus the user who recorded it
"""

import logging
from typing import Optional

from pydantic import BaseModel

from app.auth.schemas import CurrentUser
from app.core.enums import ADMIN_ROLES, SwapRequestStatus, UserRole
from app.core.exceptions import AlreadyApproved, Forbidden

logger = logging.getLogger(__name__)


class SwapContext(BaseModel):
    """Everything the policy needs to know about one swap request."""

    request_id: int
    status: SwapRequestStatus
    requesting_user_id: int
    approving_head1_user_id: Optional[int] = None
    orig_dept: Optional[int] = None
    target_dept: Optional[int] = None
    head1_dept: Optional[int] = None

    @property
    def same_department(self) -> bool:
        return self.orig_dept is not None and self.orig_dept == self.target_dept

    def involves(self, department_id: Optional[int]) -> bool:
        return department_id is not None and department_id in (self.orig_dept, self.target_dept)


def _deny(actor: CurrentUser, action: str, message: str, request_id: Optional[int] = None) -> Forbidden:
    logger.warning(
        "Forbidden: user %s (%s, dept %s) attempted %s on %s",
        actor.id,
        actor.role.value,
        actor.department_id,
        action,
        request_id,
    )
    return Forbidden(message)


def _is_admin(actor: CurrentUser) -> bool:
    return actor.role in ADMIN_ROLES


def authorize_create_swap(actor: CurrentUser) -> None:
    # Creator need not head either involved department; that is checked at approval time
    if _is_admin(actor) or actor.role == UserRole.DEPARTMENT_HEAD:
        return
    raise _deny(actor, "create swap", "Forbidden: You do not have permission to request schedule swaps.")


def authorize_first_step(actor: CurrentUser, ctx: SwapContext) -> bool:
    """Return True when the approval completes the swap in one step (same-department fast path)."""
    if actor.role != UserRole.DEPARTMENT_HEAD:
        raise _deny(actor, "approve-first", "Forbidden: Only Department Heads can perform this action.", ctx.request_id)
    if not ctx.involves(actor.department_id):
        raise _deny(
            actor,
            "approve-first",
            "Forbidden: You are not the head of either department involved.",
            ctx.request_id,
        )
    # Terminal requests fall through so the state check reports their status
    if (
        ctx.status == SwapRequestStatus.APPROVED_BY_HEAD1
        and ctx.approving_head1_user_id == actor.id
    ):
        raise AlreadyApproved(ctx.status.value)
    return ctx.same_department


def authorize_final(actor: CurrentUser, ctx: SwapContext) -> bool:
    """Return True when the actor approves with override authority (admin / assistant manager)."""
    if _is_admin(actor):
        return True
    if (
        actor.role == UserRole.DEPARTMENT_HEAD
        and not ctx.same_department
        and ctx.involves(actor.department_id)
        and actor.department_id != ctx.head1_dept
        and actor.id != ctx.approving_head1_user_id
    ):
        return False
    raise _deny(
        actor,
        "approve-final",
        "Forbidden: You do not have permission for final approval.",
        ctx.request_id,
    )


def authorize_reject(actor: CurrentUser, ctx: SwapContext) -> None:
    if _is_admin(actor):
        return
    if actor.role == UserRole.DEPARTMENT_HEAD and ctx.involves(actor.department_id):
        return
    raise _deny(actor, "reject", "Forbidden: You do not have permission to reject this request.", ctx.request_id)


def authorize_view_swap(actor: CurrentUser, ctx: SwapContext) -> None:
    if _is_admin(actor):
        return
    if actor.role == UserRole.DEPARTMENT_HEAD and (
        ctx.involves(actor.department_id) or ctx.requesting_user_id == actor.id
    ):
        return
    raise _deny(
        actor,
        "view swap",
        "Forbidden: You can only view requests involving your department or initiated by you.",
        ctx.request_id,
    )


def can_manage_substitution(actor: CurrentUser, original_teacher_dept: Optional[int]) -> bool:
    if _is_admin(actor):
        return True
    return (
        actor.role == UserRole.DEPARTMENT_HEAD
        and actor.department_id is not None
        and actor.department_id == original_teacher_dept
    )


def authorize_record_substitution(actor: CurrentUser, original_teacher_dept: Optional[int]) -> None:
    if not can_manage_substitution(actor, original_teacher_dept):
        raise _deny(actor, "record substitution", "Forbidden: You do not have permission to record this substitution")


def authorize_view_substitution(actor: CurrentUser, original_teacher_dept: Optional[int]) -> None:
    if not can_manage_substitution(actor, original_teacher_dept):
        raise _deny(
            actor,
            "view substitution",
            "Forbidden: You do not have permission to view this substitution record",
        )


def authorize_cancel_substitution(
    actor: CurrentUser,
    original_teacher_dept: Optional[int],
    recorded_by_user_id: int,
) -> None:
    if recorded_by_user_id == actor.id or can_manage_substitution(actor, original_teacher_dept):
        return
    raise _deny(actor, "cancel substitution", "Forbidden: You do not have permission to cancel this substitution")
