# backend/thrive/repositories/teacher_repository.py
"""Teacher data access."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Query, Session, joinedload

from ..models.teacher import Teacher
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TeacherRepository(BaseRepository[Teacher]):
    def __init__(self, db: Session):
        super().__init__(db, Teacher)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Teacher.user))

    def get_by_user_id(self, user_id: str) -> Optional[Teacher]:
        query = self._build_query().filter(
            Teacher.user_id == user_id,
            Teacher.deleted_at.is_(None),
        )
        return self._execute_first(query)

    def get_by_ids(self, teacher_ids: List[str]) -> List[Teacher]:
        """Non-deleted teachers among ``teacher_ids``."""
        if not teacher_ids:
            return []
        query = self._build_query().filter(
            Teacher.id.in_(teacher_ids),
            Teacher.deleted_at.is_(None),
        )
        return self._execute_query(query)

    def list_active(self) -> List[Teacher]:
        query = (
            self._build_query()
            .filter(Teacher.is_active.is_(True), Teacher.deleted_at.is_(None))
            .order_by(Teacher.id)
        )
        return self._execute_query(query)
