# backend/app/routes/v1/webhooks.py
"""
Payment webhook endpoints - API v1

Mounted under /api/v1/webhooks. Every endpoint feeds the same
reconciliation handler and answers with the status the sender needs:
200 when handled (including duplicates), 400 when redelivery cannot help,
503/504 when it should try again.

Endpoints:
    POST /payment - Provider-neutral event from a trusted relay
    POST /stripe - Stripe Checkout events
    POST /vipps - Vipps eCom callbacks
    POST /vipps/v2/payments/{order_id} - Vipps callback path form
"""

import asyncio
import hmac
import json
import logging
from typing import Mapping, NoReturn

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from ...api.dependencies import get_payment_reconciliation_service
from ...core.config import settings
from ...core.constants import INTERNAL_WEBHOOK_SECRET_HEADER
from ...core.enums import PaymentProviderName
from ...core.exceptions import (
    DomainException,
    FatalPaymentError,
    ServiceTimeoutException,
    UnauthorizedException,
)
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...schemas.checkout import PaymentEventPayload, WebhookAck
from ...services.payment_reconciliation_service import (
    Ack,
    PaymentReconciliationService,
    event_from_payload,
)
from ...services.payments.base import PaymentEvent
from ...services.payments.factory import create_payment_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

_MAX_WEBHOOK_BODY_BYTES = 1_048_576


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


async def _read_body(request: Request) -> bytes:
    body = await request.body()
    if len(body) > _MAX_WEBHOOK_BODY_BYTES:
        raise FatalPaymentError(None, "Webhook body too large")
    return body


def _verify_internal_secret(request: Request) -> None:
    """Verify the shared secret a payment relay sends with provider-neutral events."""
    secret = settings.internal_webhook_secret
    if secret is None:
        logger.error("Internal webhook secret not configured")
        raise UnauthorizedException("Webhook authentication not configured")
    provided = (request.headers.get(INTERNAL_WEBHOOK_SECRET_HEADER) or "").strip()
    if not provided or not hmac.compare_digest(provided, secret.get_secret_value()):
        logger.warning("Rejected payment webhook with bad secret")
        raise UnauthorizedException("Invalid webhook secret")


def _ack(ack: Ack) -> WebhookAck:
    return WebhookAck(received=True, subscription_id=ack.subscription_id, duplicate=ack.duplicate)


def _parse_provider_event(
    provider_name: str, body: bytes, headers: Mapping[str, str]
) -> PaymentEvent:
    provider = create_payment_provider(provider_name)
    try:
        return provider.parse_event(body, headers)
    except FatalPaymentError:
        prometheus_metrics.record_payment_webhook(provider_name, "fatal")
        raise
    except ServiceTimeoutException:
        prometheus_metrics.record_payment_webhook(provider_name, "retryable")
        raise


def _handle_provider_event(
    service: PaymentReconciliationService,
    provider_name: str,
    body: bytes,
    headers: dict[str, str],
) -> Ack:
    event = _parse_provider_event(provider_name, body, headers)
    return service.handle(event, headers)


@router.post("/payment", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    service: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
) -> WebhookAck:
    """
    Accept a completed, failed or pending payment event.

    Redelivering a handled event answers 200 with ``duplicate: true``.
    """
    try:
        _verify_internal_secret(request)
        body = await _read_body(request)
        try:
            payload = PaymentEventPayload.model_validate(json.loads(body or b"{}"))
        except (ValueError, ValidationError) as exc:
            prometheus_metrics.record_payment_webhook(PaymentProviderName.INTERNAL.value, "fatal")
            raise FatalPaymentError(None, "Malformed payment event") from exc
        ack = await asyncio.to_thread(
            service.handle, event_from_payload(payload), dict(request.headers)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _ack(ack)


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    service: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
) -> WebhookAck:
    try:
        body = await _read_body(request)
        ack = await asyncio.to_thread(
            _handle_provider_event,
            service,
            PaymentProviderName.STRIPE.value,
            body,
            dict(request.headers),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _ack(ack)


@router.post("/vipps", response_model=WebhookAck)
async def vipps_webhook(
    request: Request,
    service: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
) -> WebhookAck:
    try:
        body = await _read_body(request)
        ack = await asyncio.to_thread(
            _handle_provider_event,
            service,
            PaymentProviderName.VIPPS.value,
            body,
            dict(request.headers),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _ack(ack)


@router.post("/vipps/v2/payments/{order_id}", response_model=WebhookAck)
async def vipps_callback(
    order_id: str,
    request: Request,
    service: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
) -> WebhookAck:
    """Vipps posts to ``{callbackPrefix}/v2/payments/{orderId}``."""
    try:
        body = await _read_body(request)
        try:
            data = json.loads(body or b"{}")
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        data.setdefault("orderId", order_id)
        ack = await asyncio.to_thread(
            _handle_provider_event,
            service,
            PaymentProviderName.VIPPS.value,
            json.dumps(data).encode(),
            dict(request.headers),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _ack(ack)
