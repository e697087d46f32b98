"""Service for the payment webhook ledger."""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException, ServiceException
from app.models.webhook_event import WebhookEvent
from app.repositories.factory import RepositoryFactory
from app.services.base import BaseService

_SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "stripe-signature",
    "x-webhook-secret",
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WebhookLedgerService(BaseService):
    """
    Records every inbound payment notification before it is acted on.

    Each method commits on its own so the ledger row survives a rollback of
    the reconciliation work it describes.
    """

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)

    @BaseService.measure_operation("webhook_ledger.log_received")
    def log_received(
        self,
        *,
        source: str,
        event_type: str,
        event_id: str,
        payload: dict[str, Any],
        headers: Mapping[str, Any] | None = None,
        payment_reference: str | None = None,
        outcome: str | None = None,
    ) -> WebhookEvent:
        """
        Log a received webhook before processing.

        A redelivered ``(source, event_id)`` bumps ``retry_count`` on the
        existing row.
        """
        safe_headers = self._sanitize_headers(headers) if headers else None

        existing = self.repository.find_by_source_and_event_id(source, event_id)
        if existing is not None:
            return self._record_retry(existing, safe_headers)

        try:
            with self.transaction(source=source, event_id=event_id):
                event = self.repository.create(
                    source=source,
                    event_type=event_type or "unknown",
                    event_id=event_id,
                    payment_reference=payment_reference,
                    outcome=outcome,
                    payload=payload,
                    headers=safe_headers,
                    status="received",
                    received_at=_now_utc(),
                    retry_count=0,
                )
            return event
        except ServiceException as exc:
            # Another worker inserted the same delivery first.
            cause = exc.__cause__
            if isinstance(cause, RepositoryException) and isinstance(cause.__cause__, IntegrityError):
                existing = self.repository.find_by_source_and_event_id(source, event_id)
                if existing is not None:
                    return self._record_retry(existing, safe_headers)
            raise

    def _record_retry(
        self, event: WebhookEvent, safe_headers: dict[str, Any] | None
    ) -> WebhookEvent:
        with self.transaction(webhook_event_id=event.id):
            event.retry_count = (event.retry_count or 0) + 1
            if safe_headers is not None:
                event.headers = safe_headers
            self.repository.flush()
        self.logger.info(
            "Webhook redelivered",
            extra={
                "source": event.source,
                "event_id": event.event_id,
                "retry_count": event.retry_count,
            },
        )
        return event

    @BaseService.measure_operation("webhook_ledger.mark_processing")
    def mark_processing(self, event: WebhookEvent) -> bool:
        """Attempt to claim an event for processing."""
        with self.transaction(webhook_event_id=event.id):
            claimed = self.repository.claim_for_processing(event.id)
        if claimed:
            event.status = "processing"
            event.processing_error = None
            event.processed_at = None
        else:
            self.db.refresh(event)
        return claimed

    @BaseService.measure_operation("webhook_ledger.mark_processed")
    def mark_processed(
        self,
        event: WebhookEvent,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
        duration_ms: int | None = None,
        status: str = "processed",
    ) -> WebhookEvent:
        """Mark webhook as successfully processed."""
        with self.transaction(webhook_event_id=event.id):
            event.status = status
            event.processed_at = _now_utc()
            event.related_entity_type = related_entity_type
            event.related_entity_id = related_entity_id
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_failed")
    def mark_failed(
        self,
        event: WebhookEvent,
        *,
        error: str,
        duration_ms: int | None = None,
    ) -> WebhookEvent:
        """Mark webhook as failed."""
        with self.transaction(webhook_event_id=event.id):
            event.status = "failed"
            event.processing_error = error[:2000]
            event.processed_at = _now_utc()
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    def latest_for_reference(self, payment_reference: str) -> WebhookEvent | None:
        return self.repository.latest_for_reference(payment_reference)

    @staticmethod
    def elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)

    @staticmethod
    def _sanitize_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in headers.items():
            if key.lower() in _SENSITIVE_HEADERS:
                sanitized[key] = "[redacted]"
            else:
                sanitized[key] = value
        return sanitized
