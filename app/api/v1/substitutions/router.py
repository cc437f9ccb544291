from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import SWAP_PARTICIPANTS, require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import SubstitutionCreate, SubstitutionResponse
from . import service

router = APIRouter(prefix="/api/v1/substitutions", tags=["substitutions"])

# Admins, assistant managers and department heads manage substitutions
can_manage_substitutions = require_roles(*SWAP_PARTICIPANTS)


@router.post("", response_model=SubstitutionResponse, status_code=status.HTTP_201_CREATED)
async def create_substitution(
    payload: SubstitutionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage_substitutions),
) -> SubstitutionResponse:
    """Record a temporary substitution. Department heads only for teachers of their department."""
    try:
        return await service.create_substitution(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[SubstitutionResponse])
async def list_substitutions(
    on_date: Optional[date] = Query(None, alias="date"),
    teacher_id: Optional[int] = Query(None, alias="teacherId"),
    substitute_id: Optional[int] = Query(None, alias="substituteId"),
    department_id: Optional[int] = Query(None, alias="departmentId"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage_substitutions),
) -> List[SubstitutionResponse]:
    try:
        return await service.list_substitutions(
            db,
            current_user,
            on_date=on_date,
            teacher_id=teacher_id,
            substitute_id=substitute_id,
            department_id=department_id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{substitution_id}", response_model=SubstitutionResponse)
async def get_substitution(
    substitution_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage_substitutions),
) -> SubstitutionResponse:
    try:
        return await service.get_substitution(db, current_user, substitution_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{substitution_id}/cancel", response_model=SubstitutionResponse)
async def cancel_substitution(
    substitution_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage_substitutions),
) -> SubstitutionResponse:
    try:
        return await service.cancel_substitution(db, current_user, substitution_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
