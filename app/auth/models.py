from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base


class User(Base):
    """School user. Role decides which schedule actions are open to them."""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    # system_admin | assistant_manager | admin_supervisor | department_head | teacher | parent
    role = Column(String(50), nullable=False)
    # Populated for teachers and department heads; heads may instead be linked via departments.head_user_id
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    department = relationship("Department", foreign_keys=[department_id])
