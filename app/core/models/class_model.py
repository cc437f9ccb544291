"""School classes (e.g. 7A, 10B). Model named SchoolClass to avoid Python 'class' keyword."""
from sqlalchemy import Column, Integer, String, UniqueConstraint

from app.db.session import Base


class SchoolClass(Base):
    __tablename__ = "classes"
    __table_args__ = (UniqueConstraint("name", name="uq_class_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
