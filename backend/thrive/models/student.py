# backend/thrive/models/student.py
from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Student(Base):
    """Student profile; owns bookings and purchased packages."""

    __tablename__ = "students"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True)
    stripe_customer_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    user = relationship("User", back_populates="student")
    bookings = relationship("Booking", back_populates="student")
    packages = relationship("StudentPackage", back_populates="student")

    def __repr__(self) -> str:
        return f"<Student {self.id} user={self.user_id}>"
