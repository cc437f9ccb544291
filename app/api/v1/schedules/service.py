import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.models import User
from app.core.exceptions import ConflictError, NotFound, ValidationError
from app.core.models import ScheduleEntry, SchoolClass, Subject, TimeSlot

from .schemas import ScheduleEntryCreate, ScheduleEntryResponse, ScheduleEntryUpdate

logger = logging.getLogger(__name__)

DUPLICATE_ENTRY_MESSAGE = "A schedule entry already exists for this class, time slot, and academic year."
INVALID_REFERENCE_MESSAGE = "Invalid class, subject, teacher, or time slot ID provided."


def _to_response(e: ScheduleEntry) -> ScheduleEntryResponse:
    slot = e.time_slot
    return ScheduleEntryResponse(
        id=e.id,
        class_id=e.class_id,
        subject_id=e.subject_id,
        teacher_user_id=e.teacher_user_id,
        time_slot_id=e.time_slot_id,
        academic_year=e.academic_year,
        class_name=e.school_class.name if e.school_class else None,
        subject_name=e.subject.name if e.subject else None,
        teacher_name=e.teacher.name if e.teacher else None,
        day_of_week=slot.day_of_week if slot else None,
        period_number=slot.period_number if slot else None,
        start_time=slot.start_time if slot else None,
        end_time=slot.end_time if slot else None,
        created_at=e.created_at,
    )


def _with_details(stmt):
    return stmt.options(
        selectinload(ScheduleEntry.school_class),
        selectinload(ScheduleEntry.subject),
        selectinload(ScheduleEntry.teacher),
        selectinload(ScheduleEntry.time_slot),
    ).execution_options(populate_existing=True)


async def _load_entry(db: AsyncSession, entry_id: int) -> Optional[ScheduleEntry]:
    result = await db.execute(_with_details(select(ScheduleEntry).where(ScheduleEntry.id == entry_id)))
    return result.scalar_one_or_none()


async def _check_references(
    db: AsyncSession,
    class_id: int,
    subject_id: int,
    teacher_user_id: int,
    time_slot_id: int,
) -> None:
    if (
        await db.get(SchoolClass, class_id) is None
        or await db.get(Subject, subject_id) is None
        or await db.get(User, teacher_user_id) is None
        or await db.get(TimeSlot, time_slot_id) is None
    ):
        raise ValidationError(INVALID_REFERENCE_MESSAGE)


async def _check_slot_free(
    db: AsyncSession,
    class_id: int,
    time_slot_id: int,
    academic_year: str,
    exclude_entry_id: Optional[int] = None,
) -> None:
    stmt = select(ScheduleEntry.id).where(
        ScheduleEntry.class_id == class_id,
        ScheduleEntry.time_slot_id == time_slot_id,
        ScheduleEntry.academic_year == academic_year,
    )
    if exclude_entry_id is not None:
        stmt = stmt.where(ScheduleEntry.id != exclude_entry_id)
    if (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        raise ConflictError(DUPLICATE_ENTRY_MESSAGE)


async def create_schedule_entry(
    db: AsyncSession,
    payload: ScheduleEntryCreate,
) -> ScheduleEntryResponse:
    await _check_references(db, payload.class_id, payload.subject_id, payload.teacher_user_id, payload.time_slot_id)
    await _check_slot_free(db, payload.class_id, payload.time_slot_id, payload.academic_year)
    try:
        obj = ScheduleEntry(
            class_id=payload.class_id,
            subject_id=payload.subject_id,
            teacher_user_id=payload.teacher_user_id,
            time_slot_id=payload.time_slot_id,
            academic_year=payload.academic_year,
        )
        db.add(obj)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_ENTRY_MESSAGE)
    logger.info("Schedule entry %s created (class %s, slot %s, %s)", obj.id, obj.class_id, obj.time_slot_id, obj.academic_year)
    return _to_response(await _load_entry(db, obj.id))


async def list_schedule_entries(
    db: AsyncSession,
    class_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    day_of_week: Optional[int] = None,
    academic_year: Optional[str] = None,
) -> List[ScheduleEntryResponse]:
    stmt = (
        select(ScheduleEntry)
        .join(TimeSlot, ScheduleEntry.time_slot_id == TimeSlot.id)
        .join(SchoolClass, ScheduleEntry.class_id == SchoolClass.id)
    )
    if class_id is not None:
        stmt = stmt.where(ScheduleEntry.class_id == class_id)
    if teacher_id is not None:
        stmt = stmt.where(ScheduleEntry.teacher_user_id == teacher_id)
    if day_of_week is not None:
        stmt = stmt.where(TimeSlot.day_of_week == day_of_week)
    if academic_year is not None:
        stmt = stmt.where(ScheduleEntry.academic_year == academic_year)
    stmt = stmt.order_by(
        ScheduleEntry.academic_year,
        SchoolClass.name,
        TimeSlot.day_of_week,
        TimeSlot.period_number,
    )
    result = await db.execute(_with_details(stmt))
    return [_to_response(e) for e in result.scalars().all()]


async def get_schedule_entry(db: AsyncSession, entry_id: int) -> Optional[ScheduleEntryResponse]:
    obj = await _load_entry(db, entry_id)
    return _to_response(obj) if obj else None


async def update_schedule_entry(
    db: AsyncSession,
    entry_id: int,
    payload: ScheduleEntryUpdate,
) -> ScheduleEntryResponse:
    obj = await _load_entry(db, entry_id)
    if not obj:
        raise NotFound("Schedule entry not found")
    class_id = payload.class_id if payload.class_id is not None else obj.class_id
    subject_id = payload.subject_id if payload.subject_id is not None else obj.subject_id
    teacher_user_id = payload.teacher_user_id if payload.teacher_user_id is not None else obj.teacher_user_id
    time_slot_id = payload.time_slot_id if payload.time_slot_id is not None else obj.time_slot_id
    academic_year = payload.academic_year.strip() if payload.academic_year is not None else obj.academic_year

    await _check_references(db, class_id, subject_id, teacher_user_id, time_slot_id)
    await _check_slot_free(db, class_id, time_slot_id, academic_year, exclude_entry_id=entry_id)
    try:
        obj.class_id = class_id
        obj.subject_id = subject_id
        obj.teacher_user_id = teacher_user_id
        obj.time_slot_id = time_slot_id
        obj.academic_year = academic_year
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_ENTRY_MESSAGE)
    return _to_response(await _load_entry(db, entry_id))


async def delete_schedule_entry(db: AsyncSession, entry_id: int) -> bool:
    obj = await db.get(ScheduleEntry, entry_id)
    if not obj:
        return False
    await db.delete(obj)
    await db.commit()
    logger.info("Schedule entry %s deleted", entry_id)
    return True
