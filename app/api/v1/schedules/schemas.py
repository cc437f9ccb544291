from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.enums import SwapRequestStatus


# ----- Schedule entries -----
def _clean_academic_year(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("academic_year must not be blank")
    return v


class ScheduleEntryCreate(BaseModel):
    class_id: int
    subject_id: int
    teacher_user_id: int
    time_slot_id: int
    academic_year: str = Field(..., min_length=1, max_length=20, description="e.g. 2024 or 2024-2025")

    @field_validator("academic_year")
    @classmethod
    def strip_year(cls, v: str) -> str:
        return _clean_academic_year(v)


class ScheduleEntryUpdate(BaseModel):
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    teacher_user_id: Optional[int] = None
    time_slot_id: Optional[int] = None
    academic_year: Optional[str] = Field(None, min_length=1, max_length=20)

    @field_validator("academic_year")
    @classmethod
    def strip_year(cls, v: Optional[str]) -> Optional[str]:
        return _clean_academic_year(v) if v is not None else v


class ScheduleEntryResponse(BaseModel):
    id: int
    class_id: int
    subject_id: int
    teacher_user_id: int
    time_slot_id: int
    academic_year: str
    class_name: Optional[str] = None
    subject_name: Optional[str] = None
    teacher_name: Optional[str] = None
    day_of_week: Optional[int] = None
    period_number: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: Optional[time]) -> Optional[str]:
        return t.strftime("%H:%M") if t else None


# ----- Swap requests -----
class SwapRequestCreate(BaseModel):
    original_entry_id: int
    target_entry_id: int
    reason: Optional[str] = Field(None, max_length=2000)


class SwapRequestReject(BaseModel):
    rejection_reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("rejection_reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rejection reason is required")
        return v


class SwapRequestResponse(BaseModel):
    id: int
    requesting_user_id: int
    original_entry_id: int
    target_entry_id: int
    reason: Optional[str] = None
    status: SwapRequestStatus
    approving_head1_user_id: Optional[int] = None
    approving_head1_at: Optional[datetime] = None
    final_approver_user_id: Optional[int] = None
    final_approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    request_date: datetime

    class Config:
        from_attributes = True


class SwapRequestDetail(SwapRequestResponse):
    """Swap request plus the current state of both entries and their shared period."""

    orig_class_id: int
    orig_subject_id: int
    orig_teacher_id: int
    orig_teacher_dept_id: Optional[int] = None
    target_class_id: int
    target_subject_id: int
    target_teacher_id: int
    target_teacher_dept_id: Optional[int] = None
    time_slot_id: int
    day_of_week: int
    period_number: int
    start_time: time
    end_time: time

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return t.strftime("%H:%M")
