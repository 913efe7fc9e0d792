# backend/thrive/repositories/base_repository.py
"""
Base repository for the scheduling models.

Repositories flush but never commit; the service that owns the unit of
work decides when to commit. Every SQLAlchemy failure is re-raised as
``RepositoryException`` with the original error chained as ``__cause__``.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Data access for one model class.

    Attributes:
        db: SQLAlchemy session shared with the owning service
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        query = self._build_query().filter(self.model.id == id)
        if load_relationships:
            query = self._apply_eager_loading(query)
        return self._execute_first(query)

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        """First row whose columns equal ``criteria``, or None."""
        return self._execute_first(self._build_query().filter_by(**criteria))

    def create(self, **fields: Any) -> T:
        """Add a row and flush it so generated ids and defaults are populated."""
        name = self.model.__name__
        try:
            entity = self.model(**fields)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error(f"Integrity error creating {name}: {exc}")
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.logger.error(f"Error creating {name}: {exc}")
            raise RepositoryException(f"Failed to create {name}: {exc}") from exc

    def flush(self) -> None:
        self.db.flush()

    # Helpers for subclasses

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override to eager load the relationships callers always touch."""
        return query

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        try:
            return query.all()
        except SQLAlchemyError as exc:
            self.logger.error(f"Query on {self.model.__name__} failed: {exc}")
            raise RepositoryException(f"Query failed: {exc}") from exc

    def _execute_first(self, query: Query) -> Optional[T]:
        try:
            return query.first()
        except SQLAlchemyError as exc:
            self.logger.error(f"Query on {self.model.__name__} failed: {exc}")
            raise RepositoryException(f"Query failed: {exc}") from exc

    def _execute_scalar(self, query: Query) -> Any:
        try:
            return query.scalar()
        except SQLAlchemyError as exc:
            self.logger.error(f"Scalar query on {self.model.__name__} failed: {exc}")
            raise RepositoryException(f"Scalar query failed: {exc}") from exc
