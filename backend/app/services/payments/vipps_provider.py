"""Vipps eCom v2 payment provider."""

from datetime import datetime, timezone
import json
import logging
from typing import Any, Mapping

import httpx

from ...core.config import settings
from ...core.enums import PaymentOutcome, PaymentProviderName
from ...core.exceptions import (
    FatalPaymentError,
    PaymentProviderException,
    ServiceTimeoutException,
)
from .base import CheckoutRedirect, CheckoutRequest, PaymentEvent, PaymentProvider

logger = logging.getLogger(__name__)


def map_vipps_status(status: str) -> PaymentOutcome:
    if status in ("SALE", "CAPTURED"):
        return PaymentOutcome.COMPLETED
    if status in ("CANCELLED", "FAILED", "REJECTED"):
        return PaymentOutcome.FAILED
    return PaymentOutcome.PENDING


class VippsProvider(PaymentProvider):
    """
    Vipps eCom v2.

    Callbacks are not signed, so ``parse_event`` only trusts the order id in
    the body and re-reads the payment status from the Vipps API.
    """

    name = PaymentProviderName.VIPPS.value

    def __init__(self, client: httpx.Client | None = None) -> None:
        self.base_url = settings.vipps_base_url.rstrip("/")
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=settings.payment_provider_timeout_seconds)
        return self._client

    def _subscription_key(self) -> str:
        if settings.vipps_subscription_key is None:
            raise PaymentProviderException(self.name, "Vipps is not configured")
        return settings.vipps_subscription_key.get_secret_value()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._http().request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Vipps %s %s timed out", method, path)
            raise ServiceTimeoutException("vipps") from exc
        except httpx.HTTPError as exc:
            raise PaymentProviderException(self.name, f"Vipps request failed: {exc}") from exc
        if resp.status_code >= 400:
            logger.error("Vipps %s %s returned %s: %s", method, path, resp.status_code, resp.text)
            raise PaymentProviderException(self.name, f"Vipps returned {resp.status_code}")
        return resp.json()

    def _access_token(self) -> str:
        if settings.vipps_client_id is None or settings.vipps_client_secret is None:
            raise PaymentProviderException(self.name, "Vipps is not configured")
        data = self._request(
            "POST",
            "/accesstoken/get",
            headers={
                "client_id": settings.vipps_client_id,
                "client_secret": settings.vipps_client_secret.get_secret_value(),
                "Ocp-Apim-Subscription-Key": self._subscription_key(),
            },
        )
        return data["access_token"]

    def _auth_headers(self, request_id: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "Ocp-Apim-Subscription-Key": self._subscription_key(),
            "X-Request-Id": request_id,
            "X-TimeStamp": datetime.now(timezone.utc).isoformat(),
        }

    def create_checkout(self, request: CheckoutRequest) -> CheckoutRedirect:
        body = {
            "merchantInfo": {
                "merchantSerialNumber": settings.vipps_msn,
                "callbackPrefix": f"{settings.public_api_url}/api/v1/webhooks/vipps",
                "fallBack": request.success_url,
                "paymentType": "eComm Regular Payment",
            },
            "transaction": {
                "orderId": request.order_id,
                "amount": request.amount_minor_units,
                "transactionText": request.description,
                "skipLandingPage": False,
            },
        }
        data = self._request(
            "POST",
            "/ecomm/v2/payments",
            json=body,
            headers=self._auth_headers(request.order_id),
        )
        return CheckoutRedirect(reference=data.get("orderId", request.order_id), redirect_url=data["url"])

    def fetch_status(self, order_id: str) -> tuple[str, dict[str, Any]]:
        details = self._request(
            "GET",
            f"/ecomm/v2/payments/{order_id}/details",
            headers=self._auth_headers(f"details-{order_id}"),
        )
        status = (details.get("transactionInfo") or {}).get("status", "")
        if not status:
            history = details.get("transactionLogHistory") or []
            status = history[0].get("operation", "") if history else ""
        return status, details

    def parse_event(self, body: bytes, headers: Mapping[str, str]) -> PaymentEvent:
        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            raise FatalPaymentError(None, "Invalid Vipps payload") from exc
        order_id = payload.get("orderId") if isinstance(payload, dict) else None
        if not order_id:
            raise FatalPaymentError(None, "Order ID is required")

        status, details = self.fetch_status(order_id)
        transaction = details.get("transactionInfo") or {}
        return PaymentEvent(
            provider=self.name,
            event_id=f"{order_id}:{status or 'UNKNOWN'}",
            event_type=f"vipps.{(status or 'unknown').lower()}",
            outcome=map_vipps_status(status),
            reference=order_id,
            amount_minor_units=transaction.get("amount"),
            payload=payload,
        )
