"""Temporary substitutions: one-shot cover of a schedule entry on a single date.
No approval workflow; a record is either active or cancelled."""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.auth.services import department_expr, department_of_user_id
from app.core.enums import ADMIN_ROLES, SubstitutionStatus, UserRole
from app.core.exceptions import ConflictError, Forbidden, InvalidStateTransition, NotFound, ValidationError
from app.core.models import ScheduleEntry, Substitution, TimeSlot

from app.api.v1.schedules.resolver import (
    authorize_cancel_substitution,
    authorize_record_substitution,
    authorize_view_substitution,
)

from .schemas import SubstitutionCreate, SubstitutionResponse

logger = logging.getLogger(__name__)

ACTIVE_EXISTS_MESSAGE = "An active substitution already exists for this class period on this date."
TEACHING_ROLES = (UserRole.TEACHER.value, UserRole.DEPARTMENT_HEAD.value)


def _to_response(
    s: Substitution,
    entry: Optional[ScheduleEntry],
    original_teacher_dept_id: Optional[int],
) -> SubstitutionResponse:
    return SubstitutionResponse(
        id=s.id,
        original_schedule_entry_id=s.original_schedule_entry_id,
        original_teacher_user_id=s.original_teacher_user_id,
        substitute_teacher_user_id=s.substitute_teacher_user_id,
        substitution_date=s.substitution_date,
        reason=s.reason,
        recorded_by_user_id=s.recorded_by_user_id,
        status=s.status,
        created_at=s.created_at,
        class_id=entry.class_id if entry else None,
        subject_id=entry.subject_id if entry else None,
        time_slot_id=entry.time_slot_id if entry else None,
        original_teacher_dept_id=original_teacher_dept_id,
    )


async def _get_substitution(db: AsyncSession, substitution_id: int) -> Substitution:
    result = await db.execute(
        select(Substitution)
        .where(Substitution.id == substitution_id)
        .execution_options(populate_existing=True)
    )
    sub = result.scalar_one_or_none()
    if sub is None:
        raise NotFound("Substitution record not found")
    return sub


async def create_substitution(
    db: AsyncSession,
    actor: CurrentUser,
    payload: SubstitutionCreate,
) -> SubstitutionResponse:
    entry = await db.get(ScheduleEntry, payload.original_schedule_entry_id)
    if entry is None:
        raise NotFound("Original schedule entry not found")
    original_teacher_id = entry.teacher_user_id
    original_dept = await department_of_user_id(db, original_teacher_id)

    substitute = await db.get(User, payload.substitute_teacher_user_id)
    if substitute is None or substitute.role not in TEACHING_ROLES:
        raise NotFound("Substitute teacher not found or is not a teacher")
    if substitute.id == original_teacher_id:
        raise ValidationError("Substitute teacher is already scheduled for this class period")

    authorize_record_substitution(actor, original_dept)

    existing = await db.execute(
        select(Substitution.id).where(
            Substitution.original_schedule_entry_id == entry.id,
            Substitution.substitution_date == payload.substitution_date,
            Substitution.status == SubstitutionStatus.ACTIVE.value,
        ).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(ACTIVE_EXISTS_MESSAGE)

    try:
        sub = Substitution(
            original_schedule_entry_id=entry.id,
            original_teacher_user_id=original_teacher_id,
            substitute_teacher_user_id=substitute.id,
            substitution_date=payload.substitution_date,
            reason=payload.reason.strip() if payload.reason else None,
            recorded_by_user_id=actor.id,
            status=SubstitutionStatus.ACTIVE.value,
        )
        db.add(sub)
        await db.commit()
        await db.refresh(sub)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(ACTIVE_EXISTS_MESSAGE)
    logger.info(
        "Substitution %s recorded by user %s: entry %s on %s, teacher %s -> %s",
        sub.id,
        actor.id,
        entry.id,
        sub.substitution_date,
        original_teacher_id,
        substitute.id,
    )
    return _to_response(sub, entry, original_dept)


async def list_substitutions(
    db: AsyncSession,
    actor: CurrentUser,
    on_date: Optional[date] = None,
    teacher_id: Optional[int] = None,
    substitute_id: Optional[int] = None,
    department_id: Optional[int] = None,
) -> List[SubstitutionResponse]:
    """Department heads only see substitutions for teachers of their own department."""
    orig_teacher = aliased(User)
    orig_dept = department_expr(orig_teacher)
    stmt = (
        select(Substitution, ScheduleEntry, orig_dept)
        .join(ScheduleEntry, Substitution.original_schedule_entry_id == ScheduleEntry.id)
        .join(TimeSlot, ScheduleEntry.time_slot_id == TimeSlot.id)
        .join(orig_teacher, Substitution.original_teacher_user_id == orig_teacher.id)
    )
    is_admin = actor.role in ADMIN_ROLES
    if actor.role == UserRole.DEPARTMENT_HEAD:
        if actor.department_id is None:
            logger.warning("Department Head %s not assigned to a department.", actor.id)
            return []
        stmt = stmt.where(orig_dept == actor.department_id)
    elif not is_admin:
        raise Forbidden("Forbidden")

    if on_date is not None:
        stmt = stmt.where(Substitution.substitution_date == on_date)
    if teacher_id is not None:
        stmt = stmt.where(Substitution.original_teacher_user_id == teacher_id)
    if substitute_id is not None:
        stmt = stmt.where(Substitution.substitute_teacher_user_id == substitute_id)
    if department_id is not None and is_admin:
        stmt = stmt.where(orig_dept == department_id)

    stmt = stmt.order_by(Substitution.substitution_date.desc(), TimeSlot.start_time)
    result = await db.execute(stmt)
    return [_to_response(sub, entry, dept) for sub, entry, dept in result.all()]


async def get_substitution(
    db: AsyncSession,
    actor: CurrentUser,
    substitution_id: int,
) -> SubstitutionResponse:
    sub = await _get_substitution(db, substitution_id)
    original_dept = await department_of_user_id(db, sub.original_teacher_user_id)
    authorize_view_substitution(actor, original_dept)
    entry = await db.get(ScheduleEntry, sub.original_schedule_entry_id)
    return _to_response(sub, entry, original_dept)


async def cancel_substitution(
    db: AsyncSession,
    actor: CurrentUser,
    substitution_id: int,
) -> SubstitutionResponse:
    sub = await _get_substitution(db, substitution_id)
    original_dept = await department_of_user_id(db, sub.original_teacher_user_id)
    authorize_cancel_substitution(actor, original_dept, sub.recorded_by_user_id)
    if sub.status == SubstitutionStatus.CANCELLED.value:
        raise InvalidStateTransition(sub.status, "Substitution is already cancelled")

    sub.status = SubstitutionStatus.CANCELLED.value
    await db.commit()
    await db.refresh(sub)
    logger.info("Substitution %s cancelled by user %s", sub.id, actor.id)
    entry = await db.get(ScheduleEntry, sub.original_schedule_entry_id)
    return _to_response(sub, entry, original_dept)
