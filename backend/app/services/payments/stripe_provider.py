"""Stripe Checkout payment provider."""

import json
import logging
from typing import Any, Mapping

import stripe

from ...core.config import settings
from ...core.enums import PaymentOutcome, PaymentProviderName
from ...core.exceptions import (
    FatalPaymentError,
    PaymentProviderException,
    ServiceTimeoutException,
)
from .base import CheckoutRedirect, CheckoutRequest, PaymentEvent, PaymentProvider

logger = logging.getLogger(__name__)

_COMPLETED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
_FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


class StripeProvider(PaymentProvider):
    name = PaymentProviderName.STRIPE.value

    def __init__(self) -> None:
        if settings.stripe_secret_key is not None:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
        stripe.max_network_retries = 1

    def create_checkout(self, request: CheckoutRequest) -> CheckoutRedirect:
        if settings.stripe_secret_key is None:
            raise PaymentProviderException(self.name, "Stripe is not configured")
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": request.currency,
                            "product_data": {"name": request.description},
                            "unit_amount": request.amount_minor_units,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                client_reference_id=request.order_id,
                metadata={
                    "tenantId": request.tenant_id,
                    "userId": request.user_id,
                    "passId": request.pass_id,
                    "type": "pass_purchase",
                },
            )
        except stripe.APIConnectionError as exc:
            logger.warning("Stripe checkout timed out: %s", exc)
            raise ServiceTimeoutException("stripe") from exc
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed: {str(e)}")
            raise PaymentProviderException(self.name, "Could not start Stripe checkout") from e

        return CheckoutRedirect(reference=session.id, redirect_url=session.url)

    def parse_event(self, body: bytes, headers: Mapping[str, str]) -> PaymentEvent:
        signature = headers.get("stripe-signature")
        if settings.stripe_webhook_secret is None:
            raise FatalPaymentError(None, "Stripe webhook secret is not configured")
        if not signature:
            raise FatalPaymentError(None, "Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(
                body, signature, settings.stripe_webhook_secret.get_secret_value()
            )
        except ValueError as exc:
            raise FatalPaymentError(None, "Invalid Stripe payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise FatalPaymentError(None, "Invalid Stripe signature") from exc

        payload: dict[str, Any] = json.loads(body)
        event_type = payload.get("type", "")
        session = payload.get("data", {}).get("object", {}) or {}
        metadata = session.get("metadata") or {}

        if event_type in _COMPLETED_EVENTS:
            outcome = (
                PaymentOutcome.COMPLETED
                if session.get("payment_status") in (None, "paid", "no_payment_required")
                else PaymentOutcome.PENDING
            )
        elif event_type in _FAILED_EVENTS:
            outcome = PaymentOutcome.FAILED
        else:
            outcome = PaymentOutcome.PENDING

        return PaymentEvent(
            provider=self.name,
            event_id=event["id"],
            event_type=event_type,
            outcome=outcome,
            reference=session.get("id"),
            tenant_id=metadata.get("tenantId"),
            user_id=metadata.get("userId"),
            pass_id=metadata.get("passId"),
            amount_minor_units=session.get("amount_total"),
            payload=payload,
        )
