"""Service for logging received webhooks and their processing outcome."""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import WebhookStatus
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utc_now
from ..models.webhook_event import WebhookEvent
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class WebhookLedgerService(BaseService):
    """Durable dedupe of provider webhook deliveries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)

    def _record_retry(self, existing: WebhookEvent) -> WebhookEvent:
        existing.retry_count = (existing.retry_count or 0) + 1
        existing.last_retry_at = utc_now()
        self.repository.flush()
        return existing

    @BaseService.measure_operation("webhook_ledger.log_received")
    def log_received(
        self,
        *,
        source: str,
        event_type: str,
        payload: dict[str, Any],
        event_id: str | None = None,
    ) -> WebhookEvent:
        """
        Log a received webhook before processing.

        A redelivered event_id returns the existing row with its retry count bumped.
        """
        with self.transaction():
            if event_id:
                existing = self.repository.find_by_source_and_event_id(source, event_id)
                if existing is not None:
                    return self._record_retry(existing)

            try:
                return self.repository.create(
                    source=source,
                    event_type=event_type or "unknown",
                    event_id=event_id,
                    payload=payload,
                    status=WebhookStatus.RECEIVED.value,
                    received_at=utc_now(),
                    retry_count=0,
                )
            except RepositoryException as exc:
                # Another worker stored the same delivery first
                if event_id and isinstance(exc.__cause__, IntegrityError):
                    existing = self.repository.find_by_source_and_event_id(source, event_id)
                    if existing is not None:
                        return self._record_retry(existing)
                raise

    @BaseService.measure_operation("webhook_ledger.mark_processing")
    def mark_processing(self, event: WebhookEvent) -> WebhookEvent:
        with self.transaction():
            event.status = WebhookStatus.PROCESSING.value
            event.processing_error = None
            event.processed_at = None
            self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_processed")
    def mark_processed(
        self, event: WebhookEvent, *, duration_ms: int | None = None
    ) -> WebhookEvent:
        """Mark webhook as successfully processed."""
        with self.transaction():
            event.status = WebhookStatus.PROCESSED.value
            event.processing_error = None
            event.processed_at = utc_now()
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_failed")
    def mark_failed(
        self, event: WebhookEvent, *, error: str, duration_ms: int | None = None
    ) -> WebhookEvent:
        """Mark webhook as failed."""
        with self.transaction():
            event.status = WebhookStatus.FAILED.value
            event.processing_error = error
            event.processed_at = utc_now()
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    def is_processed(self, event: WebhookEvent) -> bool:
        return event.status == WebhookStatus.PROCESSED.value

    @BaseService.measure_operation("webhook_ledger.get_failed_events")
    def get_failed_events(self, *, limit: int = 50) -> list[WebhookEvent]:
        return self.repository.list_by_status(WebhookStatus.FAILED.value, limit=limit)
