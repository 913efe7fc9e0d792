# backend/thrive/repositories/package_repository.py
"""
Package Repository for the Thrive scheduling backend.

Student packages and their credit uses. Balance checks that lead to a
new use must read the package through ``get_for_update`` so concurrent
bookings against the same package serialize on its row lock.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..models.package import PackageUse, StudentPackage
from ..models.stripe_product_map import StripeProductMap
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PackageRepository(BaseRepository[StudentPackage]):
    def __init__(self, db: Session):
        super().__init__(db, StudentPackage)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(StudentPackage.uses),
            joinedload(StudentPackage.stripe_product_map).selectinload(
                StripeProductMap.allowances
            ),
        )

    def get_for_update(
        self, package_id: str, student_id: Optional[str] = None
    ) -> Optional[StudentPackage]:
        """Load a non-deleted package under a row lock, optionally scoped to its owner."""
        query = self._build_query().filter(
            StudentPackage.id == package_id,
            StudentPackage.deleted_at.is_(None),
        )
        if student_id is not None:
            query = query.filter(StudentPackage.student_id == student_id)
        return self._execute_first(query.with_for_update())

    def get_owned(self, package_id: str, student_id: str) -> Optional[StudentPackage]:
        query = self._apply_eager_loading(
            self._build_query().filter(
                StudentPackage.id == package_id,
                StudentPackage.student_id == student_id,
                StudentPackage.deleted_at.is_(None),
            )
        )
        return self._execute_first(query)

    def get_by_source_payment_id(self, payment_id: str) -> Optional[StudentPackage]:
        query = self._build_query().filter(StudentPackage.source_payment_id == payment_id)
        return self._execute_first(query)

    def list_unexpired_for_student(self, student_id: str, now: datetime) -> List[StudentPackage]:
        """Non-deleted packages that have not expired, newest first."""
        query = self._apply_eager_loading(
            self._build_query().filter(
                StudentPackage.student_id == student_id,
                StudentPackage.deleted_at.is_(None),
                or_(StudentPackage.expires_at.is_(None), StudentPackage.expires_at > now),
            )
        ).order_by(StudentPackage.created_at.desc())
        return self._execute_query(query)

    # Package uses

    def list_uses(self, package_id: str) -> List[PackageUse]:
        """Non-deleted uses of one package."""
        query = self.db.query(PackageUse).filter(
            PackageUse.student_package_id == package_id,
            PackageUse.deleted_at.is_(None),
        )
        return self._execute_query(query)

    def create_use(self, **kwargs) -> PackageUse:
        use = PackageUse(**kwargs)
        self.db.add(use)
        self.db.flush()
        return use

    def get_use(self, use_id: str) -> Optional[PackageUse]:
        return self._execute_first(self.db.query(PackageUse).filter(PackageUse.id == use_id))
