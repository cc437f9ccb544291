from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base


class Department(Base):
    """Teaching department. A department has at most one head (head_user_id)."""

    __tablename__ = "departments"
    __table_args__ = (UniqueConstraint("name", name="uq_department_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    head_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True, name="fk_department_head_user"),
        nullable=True,
        unique=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    head = relationship("User", foreign_keys=[head_user_id])
