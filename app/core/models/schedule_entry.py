"""Class schedule (source of truth). One teacher assignment per class/time slot/academic year."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base


class ScheduleEntry(Base):
    __tablename__ = "class_schedule_entries"
    __table_args__ = (
        UniqueConstraint("class_id", "time_slot_id", "academic_year", name="uq_schedule_class_slot_year"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=False)
    teacher_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="RESTRICT"), nullable=False)
    academic_year = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("Subject", foreign_keys=[subject_id])
    teacher = relationship("User", foreign_keys=[teacher_user_id])
    time_slot = relationship("TimeSlot", foreign_keys=[time_slot_id])
