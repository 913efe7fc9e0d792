# backend/thrive/repositories/stripe_product_map_repository.py
"""Stripe product mapping data access."""

import logging
from typing import Optional

from sqlalchemy.orm import Query, Session, selectinload

from ..models.stripe_product_map import StripeProductMap
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StripeProductMapRepository(BaseRepository[StripeProductMap]):
    def __init__(self, db: Session):
        super().__init__(db, StripeProductMap)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(StripeProductMap.allowances))

    def get_by_service_key(self, service_key: str) -> Optional[StripeProductMap]:
        query = self._build_query().filter(StripeProductMap.service_key == service_key)
        return self._execute_first(query)

    def get_active_by_service_key(self, service_key: str) -> Optional[StripeProductMap]:
        query = self._build_query().filter(
            StripeProductMap.service_key == service_key,
            StripeProductMap.active.is_(True),
        )
        return self._execute_first(query)

    def get_active_by_product_id(self, stripe_product_id: str) -> Optional[StripeProductMap]:
        query = self._apply_eager_loading(
            self._build_query().filter(
                StripeProductMap.stripe_product_id == stripe_product_id,
                StripeProductMap.active.is_(True),
            )
        )
        return self._execute_first(query)
