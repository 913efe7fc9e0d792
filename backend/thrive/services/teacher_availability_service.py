# backend/thrive/services/teacher_availability_service.py
"""
Teacher availability validation.

Answers one question: can this teacher take a session in [start, end)?
Used before any private session is created, whether it is paid by card
or with package credits.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..core.exceptions import (
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import parse_utc_datetime, start_of_day
from ..repositories.factory import RepositoryFactory
from .availability_windows import utc_weekday
from .base import BaseService

logger = logging.getLogger(__name__)

DateTimeInput = Union[str, datetime]


def parse_slot(start_at: DateTimeInput, end_at: DateTimeInput) -> tuple[datetime, datetime]:
    """Parse a requested slot into aware UTC datetimes, rejecting empty ranges."""
    try:
        start = parse_utc_datetime(start_at)
        end = parse_utc_datetime(end_at)
    except (TypeError, ValueError):
        raise ValidationException("Invalid date format for session start or end")
    if end <= start:
        raise ValidationException("Session end must be after start")
    return start, end


class TeacherAvailabilityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.session_repository = RepositoryFactory.create_class_session_repository(db)

    @BaseService.measure_operation("validate_availability")
    def validate_availability(
        self,
        teacher_id: str,
        start_at: DateTimeInput,
        end_at: DateTimeInput,
        student_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Check that the teacher can take a session in [start_at, end_at).

        Args:
            teacher_id: Teacher to check
            start_at: Slot start, ISO-8601 string or datetime (naive means UTC)
            end_at: Slot end
            student_id: When given, sessions holding only this student's
                pending bookings do not count as conflicts, so a student can
                retry a checkout for a slot they already drafted.

        Returns:
            ``{"valid": True, "teacher_id": teacher_id}``

        Raises:
            NotFoundException: Unknown or deleted teacher
            ValidationException: Any availability rule fails
        """
        start, end = parse_slot(start_at, end_at)

        try:
            teacher = self.teacher_repository.get_by_id(teacher_id, load_relationships=False)
            if teacher is None or teacher.deleted_at is not None:
                raise NotFoundException(f"Teacher {teacher_id} not found.")

            if not teacher.is_active:
                raise ValidationException(f"Teacher {teacher_id} is inactive.")

            if self.availability_repository.has_overlapping_blackout(teacher_id, start, end):
                raise ValidationException(
                    f"Teacher {teacher_id} has a blackout during the requested time."
                )

            if not self._has_covering_window(teacher_id, start, end):
                raise ValidationException(
                    f"Teacher {teacher_id} is not available during the requested time."
                )

            if self._has_conflict(teacher_id, start, end, student_id):
                raise ValidationException(
                    f"Teacher {teacher_id} has a conflicting booking during the requested time."
                )
        except (RepositoryException, SQLAlchemyError) as exc:
            self.logger.error(f"Availability check failed for teacher {teacher_id}: {exc}")
            raise ValidationException("Failed to validate session due to a database error.")

        return {"valid": True, "teacher_id": teacher_id}

    def _has_covering_window(self, teacher_id: str, start: datetime, end: datetime) -> bool:
        if self.availability_repository.has_covering_one_off(teacher_id, start, end):
            return True

        day_start = start_of_day(start)
        start_minute = int((start - day_start).total_seconds() // 60)
        # Measured from the start day's midnight so overnight rules (end > 1440) match
        end_minute = (end - day_start).total_seconds() / 60

        for rule in self.availability_repository.list_recurring_for_weekday(
            teacher_id, utc_weekday(start.date())
        ):
            if rule.start_time_minutes <= start_minute and rule.end_time_minutes >= end_minute:
                return True
        return False

    def _has_conflict(
        self, teacher_id: str, start: datetime, end: datetime, student_id: Optional[str]
    ) -> bool:
        for session in self.session_repository.find_conflicting_sessions(teacher_id, start, end):
            bookings = list(session.bookings or [])
            own_drafts_only = (
                student_id is not None
                and bookings
                and all(
                    b.student_id == student_id and b.status == BookingStatus.PENDING.value
                    for b in bookings
                )
            )
            if not own_drafts_only:
                return True
        return False
