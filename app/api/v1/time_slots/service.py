import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFound, ValidationError
from app.core.models import ScheduleEntry, TimeSlot

from .schemas import TimeSlotCreate, TimeSlotResponse

logger = logging.getLogger(__name__)


def _to_response(t: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(
        id=t.id,
        day_of_week=t.day_of_week,
        period_number=t.period_number,
        start_time=t.start_time,
        end_time=t.end_time,
    )


def _duplicate_slot(payload: TimeSlotCreate) -> ConflictError:
    return ConflictError(
        f"Time slot for day {payload.day_of_week}, period {payload.period_number} already exists"
    )


async def _check_unique(
    db: AsyncSession,
    payload: TimeSlotCreate,
    exclude_id: Optional[int] = None,
) -> None:
    stmt = select(TimeSlot.id).where(
        TimeSlot.day_of_week == payload.day_of_week,
        TimeSlot.period_number == payload.period_number,
    )
    if exclude_id is not None:
        stmt = stmt.where(TimeSlot.id != exclude_id)
    if (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        raise _duplicate_slot(payload)


async def create_time_slot(db: AsyncSession, payload: TimeSlotCreate) -> TimeSlotResponse:
    await _check_unique(db, payload)
    try:
        obj = TimeSlot(
            day_of_week=payload.day_of_week,
            period_number=payload.period_number,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return _to_response(obj)
    except IntegrityError:
        await db.rollback()
        raise _duplicate_slot(payload)


async def list_time_slots(db: AsyncSession) -> List[TimeSlotResponse]:
    result = await db.execute(select(TimeSlot).order_by(TimeSlot.day_of_week, TimeSlot.period_number))
    return [_to_response(t) for t in result.scalars().all()]


async def get_time_slot(db: AsyncSession, slot_id: int) -> Optional[TimeSlotResponse]:
    obj = await db.get(TimeSlot, slot_id)
    return _to_response(obj) if obj else None


async def update_time_slot(db: AsyncSession, slot_id: int, payload: TimeSlotCreate) -> TimeSlotResponse:
    obj = await db.get(TimeSlot, slot_id)
    if not obj:
        raise NotFound("Time slot not found")
    await _check_unique(db, payload, exclude_id=slot_id)
    try:
        obj.day_of_week = payload.day_of_week
        obj.period_number = payload.period_number
        obj.start_time = payload.start_time
        obj.end_time = payload.end_time
        await db.commit()
        await db.refresh(obj)
        return _to_response(obj)
    except IntegrityError:
        await db.rollback()
        raise _duplicate_slot(payload)


async def delete_time_slot(db: AsyncSession, slot_id: int) -> None:
    in_use = await db.execute(
        select(ScheduleEntry.id).where(ScheduleEntry.time_slot_id == slot_id).limit(1)
    )
    if in_use.scalar_one_or_none() is not None:
        raise ValidationError("Cannot delete time slot: It is currently used in the schedule.")
    obj = await db.get(TimeSlot, slot_id)
    if not obj:
        raise NotFound("Time slot not found")
    await db.delete(obj)
    await db.commit()
    logger.info("Time slot %s deleted", slot_id)
