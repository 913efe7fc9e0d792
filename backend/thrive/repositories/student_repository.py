# backend/thrive/repositories/student_repository.py
"""Student data access."""

import logging
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ..models.student import Student
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StudentRepository(BaseRepository[Student]):
    def __init__(self, db: Session):
        super().__init__(db, Student)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Student.user))

    def get_by_user_id(self, user_id: str) -> Optional[Student]:
        query = self._build_query().filter(Student.user_id == user_id)
        return self._execute_first(query)
