# backend/thrive/repositories/availability_repository.py
"""
Availability Repository for the Thrive scheduling backend.

Queries over TeacherAvailability rows. Only active, non-deleted rows ever
take part in scheduling decisions; inactive rows are kept as history.
"""

from datetime import datetime
import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.enums import AvailabilityKind
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utc_now
from ..models.teacher import TeacherAvailability
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[TeacherAvailability]):
    def __init__(self, db: Session):
        super().__init__(db, TeacherAvailability)

    def _active(self) -> Query:
        return self._build_query().filter(
            TeacherAvailability.is_active.is_(True),
            TeacherAvailability.deleted_at.is_(None),
        )

    def list_active_for_teacher(self, teacher_id: str) -> List[TeacherAvailability]:
        """Active rows for one teacher, oldest first."""
        query = (
            self._active()
            .filter(TeacherAvailability.teacher_id == teacher_id)
            .order_by(TeacherAvailability.created_at.asc(), TeacherAvailability.id.asc())
        )
        return self._execute_query(query)

    def list_active_for_teachers(self, teacher_ids: List[str]) -> List[TeacherAvailability]:
        if not teacher_ids:
            return []
        query = (
            self._active()
            .filter(TeacherAvailability.teacher_id.in_(teacher_ids))
            .order_by(TeacherAvailability.created_at.asc(), TeacherAvailability.id.asc())
        )
        return self._execute_query(query)

    def has_overlapping_blackout(self, teacher_id: str, start: datetime, end: datetime) -> bool:
        """True when an active blackout overlaps the half-open range [start, end)."""
        query = self._active().filter(
            TeacherAvailability.teacher_id == teacher_id,
            TeacherAvailability.kind == AvailabilityKind.BLACKOUT.value,
            TeacherAvailability.start_at < end,
            TeacherAvailability.end_at > start,
        )
        return self._execute_first(query) is not None

    def has_covering_one_off(self, teacher_id: str, start: datetime, end: datetime) -> bool:
        query = self._active().filter(
            TeacherAvailability.teacher_id == teacher_id,
            TeacherAvailability.kind == AvailabilityKind.ONE_OFF.value,
            TeacherAvailability.start_at <= start,
            TeacherAvailability.end_at >= end,
        )
        return self._execute_first(query) is not None

    def list_recurring_for_weekday(
        self, teacher_id: str, weekday: int
    ) -> List[TeacherAvailability]:
        query = self._active().filter(
            TeacherAvailability.teacher_id == teacher_id,
            TeacherAvailability.kind == AvailabilityKind.RECURRING.value,
            TeacherAvailability.weekday == weekday,
        )
        return self._execute_query(query)

    def deactivate_all_for_teacher(self, teacher_id: str) -> int:
        """Flip every active row of the teacher to inactive; returns the row count."""
        try:
            result = self.db.execute(
                update(TeacherAvailability)
                .where(
                    TeacherAvailability.teacher_id == teacher_id,
                    TeacherAvailability.is_active.is_(True),
                )
                .values(is_active=False, updated_at=utc_now())
                .execution_options(synchronize_session="fetch")
            )
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deactivating availability for {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to deactivate availability: {str(e)}") from e
