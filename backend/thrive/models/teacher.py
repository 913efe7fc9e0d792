# backend/thrive/models/teacher.py
"""
Teacher and availability models.

Availability rows come in three kinds:
- RECURRING: weekly rule, ``weekday`` (0=Sunday) plus minutes from 00:00 UTC.
  ``end_time_minutes`` may exceed 1440 for windows that run past midnight.
- ONE_OFF: a dated window between ``start_at`` and ``end_at``.
- BLACKOUT: a dated window during which the teacher cannot be booked.

Edits never delete rows; superseded rows are flipped to ``is_active=False``.
"""

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

from ..core.enums import AvailabilityKind
from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True)
    tier = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    user = relationship("User", back_populates="teacher")
    availabilities = relationship(
        "TeacherAvailability", back_populates="teacher", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Teacher {self.id} tier={self.tier}>"


class TeacherAvailability(Base):
    __tablename__ = "teacher_availability"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False)
    kind = Column(String(20), nullable=False)

    # RECURRING
    weekday = Column(Integer, nullable=True)
    start_time_minutes = Column(Integer, nullable=True)
    end_time_minutes = Column(Integer, nullable=True)

    # ONE_OFF / BLACKOUT
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    teacher = relationship("Teacher", back_populates="availabilities")

    __table_args__ = (
        Index("ix_teacher_availability_teacher_active", "teacher_id", "is_active"),
        CheckConstraint(
            "kind IN ('ONE_OFF', 'RECURRING', 'BLACKOUT')",
            name="ck_teacher_availability_kind",
        ),
        CheckConstraint(
            "weekday IS NULL OR (weekday >= 0 AND weekday <= 6)",
            name="ck_teacher_availability_weekday",
        ),
    )

    @property
    def is_recurring(self) -> bool:
        return self.kind == AvailabilityKind.RECURRING.value

    @property
    def is_blackout(self) -> bool:
        return self.kind == AvailabilityKind.BLACKOUT.value

    def __repr__(self) -> str:
        return f"<TeacherAvailability {self.id} {self.kind} teacher={self.teacher_id}>"
