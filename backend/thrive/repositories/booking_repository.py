# backend/thrive/repositories/booking_repository.py
"""Booking data access."""

import logging
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.session))

    def get_for_session_and_student(self, session_id: str, student_id: str) -> Optional[Booking]:
        query = self._build_query().filter(
            Booking.session_id == session_id,
            Booking.student_id == student_id,
        )
        return self._execute_first(query)
