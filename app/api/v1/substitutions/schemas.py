from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import SubstitutionStatus


class SubstitutionCreate(BaseModel):
    original_schedule_entry_id: int
    substitute_teacher_user_id: int
    substitution_date: date
    reason: Optional[str] = Field(None, max_length=2000)


class SubstitutionResponse(BaseModel):
    id: int
    original_schedule_entry_id: int
    original_teacher_user_id: int
    substitute_teacher_user_id: int
    substitution_date: date
    reason: Optional[str] = None
    recorded_by_user_id: int
    status: SubstitutionStatus
    created_at: datetime
    # Joined context
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    time_slot_id: Optional[int] = None
    original_teacher_dept_id: Optional[int] = None

    class Config:
        from_attributes = True
