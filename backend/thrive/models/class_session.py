# backend/thrive/models/class_session.py
"""
Class session model.

A session is one scheduled block of teaching time. Private sessions are
created on demand when a student books (or pays for) a slot; group and
course sessions are created ahead of time and students book into them.
The class is named ``ClassSession`` so it does not shadow
``sqlalchemy.orm.Session``; the table is ``sessions``.
"""

import math

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import SessionStatus, SessionVisibility
from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class ClassSession(Base):
    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    type = Column(String(20), nullable=False)
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False)
    course_id = Column(String(26), nullable=True)

    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    capacity_max = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default=SessionStatus.DRAFT.value)
    visibility = Column(String(20), nullable=False, default=SessionVisibility.PRIVATE.value)
    requires_enrollment = Column(Boolean, nullable=False, default=False)
    meeting_url = Column(String(500), nullable=True)
    source_timezone = Column(String(64), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    teacher = relationship("Teacher")
    bookings = relationship("Booking", back_populates="session")

    __table_args__ = (
        Index("ix_sessions_teacher_start", "teacher_id", "start_at"),
        Index("ix_sessions_status", "status"),
        CheckConstraint("end_at > start_at", name="ck_sessions_time_order"),
        CheckConstraint(
            "status IN ('DRAFT', 'SCHEDULED', 'CANCELLED', 'COMPLETED')",
            name="ck_sessions_status",
        ),
    )

    @property
    def duration_minutes(self) -> int:
        # Half a minute rounds up
        return math.floor((self.end_at - self.start_at).total_seconds() / 60 + 0.5)

    def __repr__(self) -> str:
        return f"<ClassSession {self.id} {self.type} {self.status} start={self.start_at}>"
