"""Repository helpers for the payment webhook ledger."""

from __future__ import annotations

from typing import cast

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.webhook_event import WebhookEvent
from app.repositories.base_repository import BaseRepository


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook ledger queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def find_by_source_and_event_id(self, source: str, event_id: str) -> WebhookEvent | None:
        """Find webhook event by source and external event ID."""
        try:
            result = (
                self.db.query(WebhookEvent)
                .filter(WebhookEvent.source == source, WebhookEvent.event_id == event_id)
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load webhook event %s/%s: %s", source, event_id, str(exc))
            raise RepositoryException("Failed to load webhook event") from exc
        return cast(WebhookEvent | None, result)

    def latest_for_reference(self, payment_reference: str) -> WebhookEvent | None:
        query = (
            self._build_query()
            .filter(WebhookEvent.payment_reference == payment_reference)
            .order_by(WebhookEvent.received_at.desc())
            .limit(1)
        )
        return next(iter(self._execute_query(query)), None)

    def claim_for_processing(self, event_row_id: str) -> bool:
        """
        Move an event to ``processing`` unless it already finished.

        Returns False when another delivery has processed it.
        """
        statement = (
            update(WebhookEvent)
            .where(
                WebhookEvent.id == event_row_id,
                WebhookEvent.status.notin_(("processed", "ignored")),
            )
            .values(status="processing", processing_error=None)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

