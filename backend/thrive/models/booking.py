# backend/thrive/models/booking.py
"""
Booking model.

A booking is a student's seat in a session. Bookings paid by card start
PENDING and are confirmed by the Stripe webhook; bookings paid with
package credits are created CONFIRMED and point at the consuming
package use.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import BookingStatus
from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    session_id = Column(String(26), ForeignKey("sessions.id"), nullable=False)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    invited_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by_student = Column(Boolean, nullable=True)

    # Credit payment
    student_package_id = Column(String(26), ForeignKey("student_packages.id"), nullable=True)
    package_use_id = Column(String(26), nullable=True)
    credits_cost = Column(Integer, nullable=True)

    rescheduled_count = Column(Integer, nullable=False, default=0)
    original_session_id = Column(String(26), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    session = relationship("ClassSession", back_populates="bookings")
    student = relationship("Student", back_populates="bookings")
    student_package = relationship("StudentPackage")

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_bookings_session_student"),
        Index("ix_bookings_student_status", "student_id", "status"),
    )

    def confirm(self, **package_fields) -> None:
        """Mark the booking confirmed, optionally recording how it was paid for."""
        self.status = BookingStatus.CONFIRMED.value
        self.accepted_at = utc_now()
        for key, value in package_fields.items():
            setattr(self, key, value)

    def cancel(self, reason: str) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = utc_now()
        self.cancellation_reason = reason

    def __repr__(self) -> str:
        return f"<Booking {self.id} session={self.session_id} {self.status}>"
