"""Swap request create, list, get, approve (first / final) and reject.

Every approval or rejection runs inside with_locked_swap_request: the request row is
read with SELECT ... FOR UPDATE, so concurrent approvers of the same request are
serialized and the second one re-reads the (possibly terminal) status.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.auth.services import department_expr, department_of_user_id
from app.core.clock import utcnow
from app.core.enums import ADMIN_ROLES, SwapRequestStatus, UserRole
from app.core.exceptions import Forbidden, NotFound, ValidationError
from app.core.models import ScheduleEntry, SwapRequest

from .resolver import (
    SwapContext,
    authorize_create_swap,
    authorize_final,
    authorize_first_step,
    authorize_reject,
    authorize_view_swap,
)
from .schemas import SwapRequestCreate, SwapRequestDetail, SwapRequestResponse
from .state_machine import SwapTrigger, next_status

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_response(r: SwapRequest) -> SwapRequestResponse:
    return SwapRequestResponse(
        id=r.id,
        requesting_user_id=r.requesting_user_id,
        original_entry_id=r.original_entry_id,
        target_entry_id=r.target_entry_id,
        reason=r.reason,
        status=r.status,
        approving_head1_user_id=r.approving_head1_user_id,
        approving_head1_at=r.approving_head1_at,
        final_approver_user_id=r.final_approver_user_id,
        final_approved_at=r.final_approved_at,
        rejection_reason=r.rejection_reason,
        request_date=r.request_date,
    )


def locked_swap_request_stmt(request_id: int) -> Select:
    """SELECT ... FOR UPDATE on one swap request row, refreshing any loaded instance."""
    return (
        select(SwapRequest)
        .where(SwapRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def swap_entries_stmt(swap: SwapRequest, lock: bool = False) -> Select:
    stmt = select(ScheduleEntry).where(
        ScheduleEntry.id.in_([swap.original_entry_id, swap.target_entry_id])
    )
    if lock:
        stmt = stmt.with_for_update()
    return stmt.execution_options(populate_existing=True)


async def with_locked_swap_request(
    db: AsyncSession,
    request_id: int,
    fn: Callable[[SwapRequest], Awaitable[T]],
) -> T:
    """
    Lock the swap request row, run fn on it and commit.
    Any error (including NotFound) rolls back the whole transaction and propagates unchanged.
    """
    try:
        result = await db.execute(locked_swap_request_stmt(request_id))
        swap = result.scalar_one_or_none()
        if swap is None:
            raise NotFound("Swap request not found")
        value = await fn(swap)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return value


async def _load_entries(
    db: AsyncSession,
    swap: SwapRequest,
    lock: bool = False,
) -> Tuple[ScheduleEntry, ScheduleEntry]:
    result = await db.execute(swap_entries_stmt(swap, lock=lock))
    by_id = {e.id: e for e in result.scalars().all()}
    orig = by_id.get(swap.original_entry_id)
    target = by_id.get(swap.target_entry_id)
    if orig is None or target is None:
        raise NotFound("One or both schedule entries not found")
    return orig, target


async def _build_context(
    db: AsyncSession,
    swap: SwapRequest,
    orig: ScheduleEntry,
    target: ScheduleEntry,
) -> SwapContext:
    return SwapContext(
        request_id=swap.id,
        status=SwapRequestStatus(swap.status),
        requesting_user_id=swap.requesting_user_id,
        approving_head1_user_id=swap.approving_head1_user_id,
        orig_dept=await department_of_user_id(db, orig.teacher_user_id),
        target_dept=await department_of_user_id(db, target.teacher_user_id),
        head1_dept=await department_of_user_id(db, swap.approving_head1_user_id),
    )


async def _swap_teachers(db: AsyncSession, orig: ScheduleEntry, target: ScheduleEntry) -> None:
    # Capture both assignments before writing either one
    orig_teacher_id, target_teacher_id = orig.teacher_user_id, target.teacher_user_id
    orig.teacher_user_id = target_teacher_id
    target.teacher_user_id = orig_teacher_id
    await db.flush()
    logger.info(
        "Swapped teachers: entry %s %s -> %s, entry %s %s -> %s",
        orig.id,
        orig_teacher_id,
        target_teacher_id,
        target.id,
        target_teacher_id,
        orig_teacher_id,
    )


async def create_swap_request(
    db: AsyncSession,
    actor: CurrentUser,
    payload: SwapRequestCreate,
) -> SwapRequestResponse:
    authorize_create_swap(actor)
    if payload.original_entry_id == payload.target_entry_id:
        raise ValidationError("Cannot swap an entry with itself")

    orig = await db.get(ScheduleEntry, payload.original_entry_id)
    target = await db.get(ScheduleEntry, payload.target_entry_id)
    if orig is None or target is None:
        raise NotFound("One or both schedule entries not found")
    if orig.time_slot_id != target.time_slot_id or orig.academic_year != target.academic_year:
        raise ValidationError(
            "Swap request invalid: Entries must be for the same time slot and academic year."
        )

    req = SwapRequest(
        requesting_user_id=actor.id,
        original_entry_id=orig.id,
        target_entry_id=target.id,
        reason=payload.reason.strip() if payload.reason else None,
        status=SwapRequestStatus.PENDING.value,
    )
    db.add(req)
    await db.commit()
    await db.refresh(req)
    logger.info(
        "Swap request %s created by user %s (entries %s <-> %s)",
        req.id,
        actor.id,
        orig.id,
        target.id,
    )
    return _to_response(req)


async def list_swap_requests(
    db: AsyncSession,
    actor: CurrentUser,
    status: Optional[SwapRequestStatus] = None,
    department_id: Optional[int] = None,
) -> List[SwapRequestResponse]:
    """Admins see everything (optionally by department); department heads see requests
    touching their department or initiated by them."""
    orig_e = aliased(ScheduleEntry)
    target_e = aliased(ScheduleEntry)
    orig_t = aliased(User)
    target_t = aliased(User)
    orig_dept = department_expr(orig_t)
    target_dept = department_expr(target_t)

    stmt = (
        select(SwapRequest)
        .join(orig_e, SwapRequest.original_entry_id == orig_e.id)
        .join(target_e, SwapRequest.target_entry_id == target_e.id)
        .join(orig_t, orig_e.teacher_user_id == orig_t.id)
        .join(target_t, target_e.teacher_user_id == target_t.id)
    )
    is_admin = actor.role in ADMIN_ROLES
    if actor.role == UserRole.DEPARTMENT_HEAD:
        visible = [SwapRequest.requesting_user_id == actor.id]
        if actor.department_id is not None:
            visible += [orig_dept == actor.department_id, target_dept == actor.department_id]
        stmt = stmt.where(or_(*visible))
    elif not is_admin:
        raise Forbidden("Forbidden")

    if status is not None:
        stmt = stmt.where(SwapRequest.status == status.value)
    if department_id is not None and is_admin:
        stmt = stmt.where(or_(orig_dept == department_id, target_dept == department_id))

    stmt = stmt.order_by(SwapRequest.request_date.desc(), SwapRequest.id.desc())
    result = await db.execute(stmt)
    return [_to_response(r) for r in result.scalars().all()]


async def get_swap_request(
    db: AsyncSession,
    actor: CurrentUser,
    request_id: int,
) -> SwapRequestDetail:
    swap = await db.get(SwapRequest, request_id)
    if swap is None:
        raise NotFound("Swap request not found")
    result = await db.execute(
        select(ScheduleEntry)
        .where(ScheduleEntry.id.in_([swap.original_entry_id, swap.target_entry_id]))
        .options(selectinload(ScheduleEntry.time_slot))
        .execution_options(populate_existing=True)
    )
    by_id = {e.id: e for e in result.scalars().all()}
    orig = by_id.get(swap.original_entry_id)
    target = by_id.get(swap.target_entry_id)
    if orig is None or target is None:
        raise NotFound("One or both schedule entries not found")

    ctx = await _build_context(db, swap, orig, target)
    authorize_view_swap(actor, ctx)

    slot = orig.time_slot
    return SwapRequestDetail(
        **_to_response(swap).model_dump(),
        orig_class_id=orig.class_id,
        orig_subject_id=orig.subject_id,
        orig_teacher_id=orig.teacher_user_id,
        orig_teacher_dept_id=ctx.orig_dept,
        target_class_id=target.class_id,
        target_subject_id=target.subject_id,
        target_teacher_id=target.teacher_user_id,
        target_teacher_dept_id=ctx.target_dept,
        time_slot_id=slot.id,
        day_of_week=slot.day_of_week,
        period_number=slot.period_number,
        start_time=slot.start_time,
        end_time=slot.end_time,
    )


async def approve_first_step(
    db: AsyncSession,
    actor: CurrentUser,
    request_id: int,
) -> SwapRequestResponse:
    """Department head sign-off. Same-department swaps complete here; cross-department ones
    move to approved_by_head1 and wait for the other head (or an admin)."""

    async def _approve(swap: SwapRequest) -> SwapRequest:
        orig, target = await _load_entries(db, swap, lock=True)
        ctx = await _build_context(db, swap, orig, target)
        same_department = authorize_first_step(actor, ctx)
        trigger = (
            SwapTrigger.FIRST_STEP_SAME_DEPARTMENT
            if same_department
            else SwapTrigger.FIRST_STEP_CROSS_DEPARTMENT
        )
        new_status = next_status(ctx.status, trigger)

        now = utcnow()
        swap.approving_head1_user_id = actor.id
        swap.approving_head1_at = now
        if new_status == SwapRequestStatus.APPROVED:
            swap.final_approver_user_id = actor.id
            swap.final_approved_at = now
            await _swap_teachers(db, orig, target)
        swap.status = new_status.value
        await db.flush()
        logger.info(
            "Swap request %s: %s -> %s (first step by user %s)",
            swap.id,
            ctx.status.value,
            new_status.value,
            actor.id,
        )
        return swap

    swap = await with_locked_swap_request(db, request_id, _approve)
    return _to_response(swap)


async def approve_final(
    db: AsyncSession,
    actor: CurrentUser,
    request_id: int,
) -> SwapRequestResponse:
    """Second department head or admin / assistant manager completes the swap."""

    async def _approve(swap: SwapRequest) -> SwapRequest:
        orig, target = await _load_entries(db, swap, lock=True)
        ctx = await _build_context(db, swap, orig, target)
        override = authorize_final(actor, ctx)
        trigger = SwapTrigger.FINAL_OVERRIDE if override else SwapTrigger.FINAL
        new_status = next_status(ctx.status, trigger)

        swap.final_approver_user_id = actor.id
        swap.final_approved_at = utcnow()
        await _swap_teachers(db, orig, target)
        swap.status = new_status.value
        await db.flush()
        logger.info(
            "Swap request %s: %s -> %s (final by user %s%s)",
            swap.id,
            ctx.status.value,
            new_status.value,
            actor.id,
            ", override" if override else "",
        )
        return swap

    swap = await with_locked_swap_request(db, request_id, _approve)
    return _to_response(swap)


async def reject_swap_request(
    db: AsyncSession,
    actor: CurrentUser,
    request_id: int,
    rejection_reason: str,
) -> SwapRequestResponse:
    if not rejection_reason or not rejection_reason.strip():
        raise ValidationError("Rejection reason is required")

    async def _reject(swap: SwapRequest) -> SwapRequest:
        orig, target = await _load_entries(db, swap)
        ctx = await _build_context(db, swap, orig, target)
        authorize_reject(actor, ctx)
        new_status = next_status(ctx.status, SwapTrigger.REJECT)

        swap.status = new_status.value
        swap.final_approver_user_id = actor.id
        swap.final_approved_at = utcnow()
        swap.rejection_reason = rejection_reason.strip()
        await db.flush()
        logger.info("Swap request %s: %s -> rejected by user %s", swap.id, ctx.status.value, actor.id)
        return swap

    swap = await with_locked_swap_request(db, request_id, _reject)
    return _to_response(swap)
