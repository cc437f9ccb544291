from app.core.models.class_model import SchoolClass
from app.core.models.department import Department
from app.core.models.schedule_entry import ScheduleEntry
from app.core.models.subject import Subject
from app.core.models.substitution import Substitution
from app.core.models.swap_request import SwapRequest
from app.core.models.time_slot import TimeSlot

__all__ = [
    "Department",
    "ScheduleEntry",
    "SchoolClass",
    "Subject",
    "Substitution",
    "SwapRequest",
    "TimeSlot",
]
