# backend/app/services/payment_reconciliation_service.py
"""
Payment Reconciliation Service for the dance school platform.

Turns completed payment notifications into subscriptions exactly once,
however many times a provider delivers the same event. Every delivery is
recorded in the webhook ledger first; the outcome of handling it is
written back to that row.

Callers translate the two failure types into HTTP answers the provider
understands: RetryablePaymentError asks for redelivery, FatalPaymentError
tells the provider to stop.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from ..core.enums import CheckoutStatus, PaymentOutcome
from ..core.exceptions import (
    DomainException,
    DuplicatePaymentException,
    FatalPaymentError,
    NotFoundException,
    RetryablePaymentError,
    ServiceException,
    ServiceTimeoutException,
    ValidationException,
)
from ..models.webhook_event import WebhookEvent
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.checkout import PaymentEventPayload
from .base import BaseService
from .payments.base import PaymentEvent
from .subscription_ledger_service import SubscriptionLedgerService
from .webhook_ledger_service import WebhookLedgerService

logger = logging.getLogger(__name__)

_STORE_FAILURES = (ServiceException, ServiceTimeoutException)


@dataclass
class Ack:
    """Successful handling of one delivery."""

    subscription_id: Optional[str] = None
    duplicate: bool = False
    outcome: str = PaymentOutcome.COMPLETED.value


def event_from_payload(payload: PaymentEventPayload) -> PaymentEvent:
    """Normalize a provider-neutral webhook body."""
    reference = payload.external_payment_reference
    event_id = payload.event_id or f"{reference}:{payload.status}"
    return PaymentEvent(
        provider=payload.provider,
        event_id=event_id,
        event_type=f"payment.{payload.status}",
        outcome=PaymentOutcome(payload.status),
        reference=reference,
        tenant_id=payload.tenant_id,
        user_id=payload.user_id,
        pass_id=payload.pass_id,
        amount_minor_units=payload.amount_minor_units,
        payload=payload.model_dump(mode="json"),
    )


class PaymentReconciliationService(BaseService):
    """Exactly-once subscription creation from at-least-once payment events."""

    def __init__(
        self,
        db: Session,
        ledger: Optional[SubscriptionLedgerService] = None,
        webhook_ledger: Optional[WebhookLedgerService] = None,
    ):
        super().__init__(db)
        self.ledger = ledger or SubscriptionLedgerService(db)
        self.webhook_ledger = webhook_ledger or WebhookLedgerService(db)
        self.checkout_repository = RepositoryFactory.create_payment_checkout_repository(db)

    @BaseService.measure_operation("handle_payment_event")
    def handle(self, event: PaymentEvent, headers: Optional[Mapping[str, str]] = None) -> Ack:
        """
        Handle one payment notification.

        Completed payments create a subscription unless the reference already
        has one, in which case the existing subscription is acknowledged as a
        duplicate. Pending and failed payments are recorded and acknowledged.

        Raises:
            FatalPaymentError: The event is malformed or names unknown entities
            RetryablePaymentError: The store failed or timed out
        """
        started = time.monotonic()
        reference = event.reference
        if not reference:
            prometheus_metrics.record_payment_webhook(event.provider, "fatal")
            raise FatalPaymentError(None, "Payment reference is required")

        try:
            row = self.webhook_ledger.log_received(
                source=event.provider,
                event_type=event.event_type,
                event_id=event.event_id,
                payload=event.payload,
                headers=headers,
                payment_reference=reference,
                outcome=event.outcome.value,
            )
        except _STORE_FAILURES as exc:
            prometheus_metrics.record_payment_webhook(event.provider, "retryable")
            raise RetryablePaymentError(reference) from exc

        try:
            if not self.webhook_ledger.mark_processing(row):
                return self._already_handled(event, row)

            if event.outcome is PaymentOutcome.COMPLETED:
                ack = self._complete(event, row, started)
            else:
                ack = self._record_unpaid(event, row, started)
        except FatalPaymentError as exc:
            self._fail(row, exc.message, started)
            prometheus_metrics.record_payment_webhook(event.provider, "fatal")
            raise
        except _STORE_FAILURES as exc:
            self._fail(row, exc.message, started)
            prometheus_metrics.record_payment_webhook(event.provider, "retryable")
            raise RetryablePaymentError(reference) from exc

        prometheus_metrics.record_payment_webhook(
            event.provider, "duplicate" if ack.duplicate else ack.outcome
        )
        return ack

    def _complete(self, event: PaymentEvent, row: WebhookEvent, started: float) -> Ack:
        reference = event.reference or ""
        existing = self.ledger.get_by_reference(reference)
        if existing is not None:
            return self._finish_duplicate(row, existing.id, started)

        checkout = self.checkout_repository.get_by_reference(reference, event.provider)
        tenant_id = event.tenant_id or (checkout.tenant_id if checkout else None)
        user_id = event.user_id or (checkout.user_id if checkout else None)
        pass_id = event.pass_id or (checkout.pass_definition_id if checkout else None)
        if not (tenant_id and user_id and pass_id):
            raise FatalPaymentError(reference, "Payment event is missing tenant, user or pass")

        if (
            checkout is not None
            and event.amount_minor_units is not None
            and event.amount_minor_units != checkout.amount_minor_units
        ):
            self.logger.warning(
                "Paid amount differs from checkout amount",
                extra={
                    "payment_reference": reference,
                    "expected": checkout.amount_minor_units,
                    "paid": event.amount_minor_units,
                },
            )

        try:
            subscription = self.ledger.create_from_payment(
                tenant_id, user_id, pass_id, reference, payment_provider=event.provider
            )
        except DuplicatePaymentException as exc:
            return self._finish_duplicate(row, exc.details.get("subscription_id"), started)
        except (NotFoundException, ValidationException) as exc:
            raise FatalPaymentError(reference, exc.message) from exc

        self._update_checkout(reference, event.provider, CheckoutStatus.COMPLETED, subscription.id)
        self.webhook_ledger.mark_processed(
            row,
            related_entity_type="subscription",
            related_entity_id=subscription.id,
            duration_ms=self.webhook_ledger.elapsed_ms(started),
        )
        return Ack(subscription_id=subscription.id)

    def _record_unpaid(self, event: PaymentEvent, row: WebhookEvent, started: float) -> Ack:
        if event.outcome is PaymentOutcome.FAILED:
            self._update_checkout(event.reference or "", event.provider, CheckoutStatus.FAILED, None)
        self.webhook_ledger.mark_processed(
            row,
            duration_ms=self.webhook_ledger.elapsed_ms(started),
            status="processed" if event.outcome is PaymentOutcome.FAILED else "ignored",
        )
        self.logger.info(
            "Payment not completed",
            extra={"payment_reference": event.reference, "outcome": event.outcome.value},
        )
        return Ack(outcome=event.outcome.value)

    def _already_handled(self, event: PaymentEvent, row: WebhookEvent) -> Ack:
        existing = self.ledger.get_by_reference(event.reference or "")
        self.logger.info(
            "Payment event already handled",
            extra={"payment_reference": event.reference, "webhook_event_id": row.id},
        )
        prometheus_metrics.record_payment_webhook(event.provider, "duplicate")
        return Ack(
            subscription_id=existing.id if existing else None,
            duplicate=True,
            outcome=event.outcome.value,
        )

    def _finish_duplicate(
        self, row: WebhookEvent, subscription_id: Optional[str], started: float
    ) -> Ack:
        self.webhook_ledger.mark_processed(
            row,
            related_entity_type="subscription",
            related_entity_id=subscription_id,
            duration_ms=self.webhook_ledger.elapsed_ms(started),
        )
        return Ack(subscription_id=subscription_id, duplicate=True)

    def _update_checkout(
        self,
        reference: str,
        provider: str,
        status: CheckoutStatus,
        subscription_id: Optional[str],
    ) -> None:
        checkout = self.checkout_repository.get_by_reference(reference, provider)
        if checkout is None or checkout.status == CheckoutStatus.COMPLETED.value:
            return
        with self.transaction(payment_reference=reference):
            checkout.status = status.value
            checkout.subscription_id = subscription_id
            if status is CheckoutStatus.COMPLETED:
                checkout.completed_at = datetime.now(timezone.utc)
            self.checkout_repository.flush()

    def _fail(self, row: WebhookEvent, error: str, started: float) -> None:
        try:
            self.webhook_ledger.mark_failed(
                row, error=error, duration_ms=self.webhook_ledger.elapsed_ms(started)
            )
        except DomainException as exc:
            self.logger.error(
                "Could not record webhook failure: %s",
                exc.message,
                extra={"webhook_event_id": row.id, "payment_reference": row.payment_reference},
            )
