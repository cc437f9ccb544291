from datetime import datetime, time
from typing import Union

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


def _parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str):
        v = v.strip()
        if len(v) == 5:  # HH:MM
            return datetime.strptime(v, "%H:%M").time()
        return datetime.strptime(v, "%H:%M:%S").time()
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 09:00, 09:45) or time")


class TimeSlotCreate(BaseModel):
    """Used for both create and update (PUT replaces every field)."""

    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")
    period_number: int = Field(..., ge=1)
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:45")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return _parse_time_24(v)

    @model_validator(mode="after")
    def check_order(self) -> "TimeSlotCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimeSlotResponse(BaseModel):
    id: int
    day_of_week: int
    period_number: int
    start_time: time
    end_time: time

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return t.strftime("%H:%M")
