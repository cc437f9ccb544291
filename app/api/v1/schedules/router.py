from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import SCHEDULE_MANAGERS, SCHEDULE_VIEWERS, SWAP_PARTICIPANTS, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import SwapRequestStatus, UserRole
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ScheduleEntryCreate,
    ScheduleEntryResponse,
    ScheduleEntryUpdate,
    SwapRequestCreate,
    SwapRequestDetail,
    SwapRequestReject,
    SwapRequestResponse,
)
from . import service, swap_service

router = APIRouter(prefix="/api/v1/schedules", tags=["schedules"])


# ----- Swap requests (declared before /{entry_id} routes) -----
@router.post(
    "/swap-requests",
    response_model=SwapRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_swap_request(
    payload: SwapRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*SWAP_PARTICIPANTS)),
) -> SwapRequestResponse:
    """Request that two entries in the same period exchange teachers. Starts as pending."""
    try:
        return await swap_service.create_swap_request(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/swap-requests", response_model=List[SwapRequestResponse])
async def list_swap_requests(
    status_filter: Optional[SwapRequestStatus] = Query(None, alias="status"),
    department_id: Optional[int] = Query(None, alias="departmentId"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*SWAP_PARTICIPANTS)),
) -> List[SwapRequestResponse]:
    """Department heads only see requests touching their department or raised by them."""
    try:
        return await swap_service.list_swap_requests(
            db, current_user, status=status_filter, department_id=department_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/swap-requests/{request_id}", response_model=SwapRequestDetail)
async def get_swap_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*SWAP_PARTICIPANTS)),
) -> SwapRequestDetail:
    try:
        return await swap_service.get_swap_request(db, current_user, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/swap-requests/{request_id}/approve-first", response_model=SwapRequestResponse)
async def approve_swap_request_first_step(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.DEPARTMENT_HEAD)),
) -> SwapRequestResponse:
    """Head of an involved department approves. Same-department swaps are applied immediately."""
    try:
        return await swap_service.approve_first_step(db, current_user, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/swap-requests/{request_id}/approve-final", response_model=SwapRequestResponse)
async def approve_swap_request_final(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*SWAP_PARTICIPANTS)),
) -> SwapRequestResponse:
    """Second department head, or admin / assistant manager, approves and the teachers are swapped."""
    try:
        return await swap_service.approve_final(db, current_user, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/swap-requests/{request_id}/reject", response_model=SwapRequestResponse)
async def reject_swap_request(
    request_id: int,
    payload: SwapRequestReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*SWAP_PARTICIPANTS)),
) -> SwapRequestResponse:
    try:
        return await swap_service.reject_swap_request(
            db, current_user, request_id, payload.rejection_reason
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# ----- Schedule entries -----
@router.post(
    "",
    response_model=ScheduleEntryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def create_schedule_entry(
    payload: ScheduleEntryCreate,
    db: AsyncSession = Depends(get_db),
) -> ScheduleEntryResponse:
    try:
        return await service.create_schedule_entry(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ScheduleEntryResponse],
    dependencies=[Depends(require_roles(*SCHEDULE_VIEWERS))],
)
async def list_schedule_entries(
    class_id: Optional[int] = Query(None, alias="classId"),
    teacher_id: Optional[int] = Query(None, alias="teacherId"),
    day_of_week: Optional[int] = Query(None, alias="dayOfWeek", ge=0, le=6),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
) -> List[ScheduleEntryResponse]:
    return await service.list_schedule_entries(
        db,
        class_id=class_id,
        teacher_id=teacher_id,
        day_of_week=day_of_week,
        academic_year=academic_year,
    )


@router.get(
    "/class/{class_id}",
    response_model=List[ScheduleEntryResponse],
    dependencies=[Depends(require_roles(*SCHEDULE_VIEWERS))],
)
async def get_schedule_by_class(
    class_id: int,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
) -> List[ScheduleEntryResponse]:
    if not academic_year:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Academic year query parameter is required")
    return await service.list_schedule_entries(db, class_id=class_id, academic_year=academic_year)


@router.get(
    "/teacher/{teacher_id}",
    response_model=List[ScheduleEntryResponse],
    dependencies=[Depends(require_roles(*SCHEDULE_VIEWERS))],
)
async def get_schedule_by_teacher(
    teacher_id: int,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
) -> List[ScheduleEntryResponse]:
    if not academic_year:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Academic year query parameter is required")
    return await service.list_schedule_entries(db, teacher_id=teacher_id, academic_year=academic_year)


@router.get(
    "/{entry_id}",
    response_model=ScheduleEntryResponse,
    dependencies=[Depends(require_roles(*SCHEDULE_VIEWERS))],
)
async def get_schedule_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
) -> ScheduleEntryResponse:
    obj = await service.get_schedule_entry(db, entry_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule entry not found")
    return obj


@router.put(
    "/{entry_id}",
    response_model=ScheduleEntryResponse,
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def update_schedule_entry(
    entry_id: int,
    payload: ScheduleEntryUpdate,
    db: AsyncSession = Depends(get_db),
) -> ScheduleEntryResponse:
    try:
        return await service.update_schedule_entry(db, entry_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{entry_id}",
    dependencies=[Depends(require_roles(*SCHEDULE_MANAGERS))],
)
async def delete_schedule_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict:
    deleted = await service.delete_schedule_entry(db, entry_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule entry not found")
    return {"msg": "Schedule entry deleted successfully"}
