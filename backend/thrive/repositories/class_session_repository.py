# backend/thrive/repositories/class_session_repository.py
"""
Class Session Repository for the Thrive scheduling backend.

Handles:
- Session lookups, with and without row locks
- Conflict queries for availability validation
- Teacher dashboard queries (stats and confirmed session rows)
"""

from datetime import datetime
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.enums import BookingStatus, SessionStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.class_session import ClassSession
from ..models.student import Student
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClassSessionRepository(BaseRepository[ClassSession]):
    def __init__(self, db: Session):
        super().__init__(db, ClassSession)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(ClassSession.teacher))

    def get_for_update(self, session_id: str) -> Optional[ClassSession]:
        """Load a session and lock its row until the transaction ends."""
        query = self._build_query().filter(ClassSession.id == session_id).with_for_update()
        return self._execute_first(query)

    def find_conflicting_sessions(
        self, teacher_id: str, start: datetime, end: datetime
    ) -> List[ClassSession]:
        """
        Sessions of the teacher overlapping [start, end).

        Deleted and cancelled sessions never conflict. Bookings are loaded so
        callers can ignore sessions that only hold a student's own drafts.
        """
        query = (
            self._build_query()
            .options(selectinload(ClassSession.bookings))
            .filter(
                ClassSession.teacher_id == teacher_id,
                ClassSession.deleted_at.is_(None),
                ClassSession.status != SessionStatus.CANCELLED.value,
                ClassSession.start_at < end,
                ClassSession.end_at > start,
            )
        )
        return self._execute_query(query)

    def list_scheduled_overlapping(
        self, teacher_ids: List[str], start: datetime, end: datetime
    ) -> List[ClassSession]:
        """Scheduled, non-deleted sessions of the teachers that overlap [start, end]."""
        if not teacher_ids:
            return []
        query = (
            self._build_query()
            .filter(
                ClassSession.teacher_id.in_(teacher_ids),
                ClassSession.status == SessionStatus.SCHEDULED.value,
                ClassSession.deleted_at.is_(None),
                ClassSession.start_at < end,
                ClassSession.end_at > start,
            )
            .order_by(ClassSession.start_at.asc())
        )
        return self._execute_query(query)

    # Teacher dashboard

    def _confirmed_rows(self, teacher_id: str) -> Query:
        return (
            self.db.query(ClassSession, Booking, User)
            .join(Booking, Booking.session_id == ClassSession.id)
            .join(Student, Student.id == Booking.student_id)
            .join(User, User.id == Student.user_id)
            .filter(
                ClassSession.teacher_id == teacher_id,
                ClassSession.deleted_at.is_(None),
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )

    def get_next_confirmed_session(
        self, teacher_id: str, now: datetime
    ) -> Optional[Tuple[ClassSession, Booking, User]]:
        query = (
            self._confirmed_rows(teacher_id)
            .filter(
                ClassSession.status == SessionStatus.SCHEDULED.value,
                ClassSession.start_at > now,
            )
            .order_by(ClassSession.start_at.asc())
        )
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading next session for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to load next session: {str(e)}") from e

    def count_confirmed_bookings(
        self, teacher_id: str, status: str, *, starting_after: Optional[datetime] = None
    ) -> int:
        """Count confirmed bookings on the teacher's sessions in ``status``."""
        query = (
            self.db.query(func.count(Booking.id))
            .join(ClassSession, ClassSession.id == Booking.session_id)
            .filter(
                ClassSession.teacher_id == teacher_id,
                ClassSession.deleted_at.is_(None),
                ClassSession.status == status,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        if starting_after is not None:
            query = query.filter(ClassSession.start_at > starting_after)
        return int(self._execute_scalar(query) or 0)

    def count_distinct_confirmed_students(self, teacher_id: str) -> int:
        query = (
            self.db.query(func.count(func.distinct(Booking.student_id)))
            .join(ClassSession, ClassSession.id == Booking.session_id)
            .filter(
                ClassSession.teacher_id == teacher_id,
                ClassSession.deleted_at.is_(None),
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        return int(self._execute_scalar(query) or 0)

    def list_confirmed_scheduled_rows(
        self,
        teacher_id: str,
        *,
        start_from: Optional[datetime] = None,
        end_until: Optional[datetime] = None,
    ) -> List[Any]:
        """(session, booking, user) rows for scheduled sessions with confirmed bookings."""
        query = self._confirmed_rows(teacher_id).filter(
            ClassSession.status == SessionStatus.SCHEDULED.value
        )
        if start_from is not None:
            query = query.filter(ClassSession.start_at >= start_from)
        if end_until is not None:
            query = query.filter(ClassSession.end_at <= end_until)
        query = query.order_by(ClassSession.start_at.asc())
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing sessions for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to list teacher sessions: {str(e)}") from e
