"""Teacher swap between two schedule entries in the same period; approved by department heads."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.enums import SwapRequestStatus
from app.db.session import Base


class SwapRequest(Base):
    __tablename__ = "schedule_swap_requests"
    __table_args__ = (
        CheckConstraint("original_entry_id <> target_entry_id", name="ck_swap_distinct_entries"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    requesting_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    original_entry_id = Column(
        Integer, ForeignKey("class_schedule_entries.id", ondelete="CASCADE"), nullable=False
    )
    target_entry_id = Column(
        Integer, ForeignKey("class_schedule_entries.id", ondelete="CASCADE"), nullable=False
    )
    reason = Column(Text, nullable=True)
    # pending -> approved_by_head1 -> approved | rejected
    status = Column(String(30), nullable=False, default=SwapRequestStatus.PENDING.value, index=True)
    approving_head1_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approving_head1_at = Column(DateTime(timezone=True), nullable=True)
    # Final approver, or the rejecting user for rejected requests
    final_approver_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    final_approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    request_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    requesting_user = relationship("User", foreign_keys=[requesting_user_id])
    original_entry = relationship("ScheduleEntry", foreign_keys=[original_entry_id])
    target_entry = relationship("ScheduleEntry", foreign_keys=[target_entry_id])
    approving_head1_user = relationship("User", foreign_keys=[approving_head1_user_id])
    final_approver_user = relationship("User", foreign_keys=[final_approver_user_id])
