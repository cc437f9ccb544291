"""Single-date cover of a schedule entry by another teacher."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.enums import SubstitutionStatus
from app.db.session import Base


class Substitution(Base):
    __tablename__ = "temporary_substitutions"
    __table_args__ = (
        # At most one active substitution per entry and date
        Index(
            "uq_substitution_active_entry_date",
            "original_schedule_entry_id",
            "substitution_date",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_schedule_entry_id = Column(
        Integer, ForeignKey("class_schedule_entries.id", ondelete="CASCADE"), nullable=False
    )
    # Snapshot of the scheduled teacher at record time
    original_teacher_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    substitute_teacher_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    substitution_date = Column(Date, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    recorded_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    status = Column(String(20), nullable=False, default=SubstitutionStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    schedule_entry = relationship("ScheduleEntry", foreign_keys=[original_schedule_entry_id])
    original_teacher = relationship("User", foreign_keys=[original_teacher_user_id])
    substitute_teacher = relationship("User", foreign_keys=[substitute_teacher_user_id])
    recorded_by_user = relationship("User", foreign_keys=[recorded_by_user_id])
