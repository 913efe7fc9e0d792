"""Repository helpers for the webhook event ledger."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..models.webhook_event import WebhookEvent
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook ledger queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def find_by_source_and_event_id(self, source: str, event_id: str) -> WebhookEvent | None:
        query = self._build_query().filter(
            WebhookEvent.source == source,
            WebhookEvent.event_id == event_id,
        )
        return self._execute_first(query)

    def list_by_status(self, status: str, *, limit: int = 50) -> list[WebhookEvent]:
        query = (
            self._build_query()
            .filter(WebhookEvent.status == status)
            .order_by(WebhookEvent.received_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)
