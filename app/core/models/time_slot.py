from sqlalchemy import CheckConstraint, Column, Integer, Time, UniqueConstraint

from app.db.session import Base


class TimeSlot(Base):
    """Weekly teaching period. Reference data for schedule entries."""

    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("day_of_week", "period_number", name="uq_time_slot_day_period"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_time_slot_day_of_week"),
        CheckConstraint("period_number >= 1", name="ck_time_slot_period_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Monday .. 6=Sunday
    period_number = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
