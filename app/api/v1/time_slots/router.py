from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import SCHEDULE_MANAGERS, require_roles
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import TimeSlotCreate, TimeSlotResponse
from . import service

router = APIRouter(prefix="/api/v1/time-slots", tags=["time-slots"])


@router.post(
    "",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def create_time_slot(
    payload: TimeSlotCreate,
    db: AsyncSession = Depends(get_db),
) -> TimeSlotResponse:
    try:
        return await service.create_time_slot(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[TimeSlotResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_time_slots(db: AsyncSession = Depends(get_db)) -> List[TimeSlotResponse]:
    return await service.list_time_slots(db)


@router.get(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_time_slot(slot_id: int, db: AsyncSession = Depends(get_db)) -> TimeSlotResponse:
    obj = await service.get_time_slot(db, slot_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
    return obj


@router.put(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def update_time_slot(
    slot_id: int,
    payload: TimeSlotCreate,
    db: AsyncSession = Depends(get_db),
) -> TimeSlotResponse:
    try:
        return await service.update_time_slot(db, slot_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{slot_id}",
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def delete_time_slot(slot_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await service.delete_time_slot(db, slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"msg": "Time slot deleted successfully"}
