"""Checkout and payment webhook schemas."""

from typing import Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class CheckoutCreate(StrictRequestModel):
    pass_id: str = Field(..., min_length=1)
    success_url: Optional[str] = Field(None, max_length=2000)
    cancel_url: Optional[str] = Field(None, max_length=2000)


class CheckoutResponse(StrictModel):
    provider: str
    reference: str
    redirect_url: str


class PaymentEventPayload(StrictRequestModel):
    """
    Provider-neutral payment notification.

    Posted to ``/webhooks/payment`` by trusted relays; the provider-specific
    endpoints translate into the same shape internally.
    """

    event_id: Optional[str] = Field(None, max_length=255)
    provider: str = Field("internal", max_length=20)
    status: str = Field("completed", pattern="^(completed|failed|pending)$")
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    pass_id: Optional[str] = None
    external_payment_reference: Optional[str] = Field(None, max_length=255)
    amount_minor_units: Optional[int] = Field(None, ge=0)


class WebhookAck(StrictModel):
    received: bool = True
    subscription_id: Optional[str] = None
    duplicate: bool = False
