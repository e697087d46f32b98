"""Provider-agnostic payment interfaces."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from ...core.enums import PaymentOutcome


class CheckoutRequest(BaseModel):
    tenant_id: str
    user_id: str
    pass_id: str
    description: str
    amount_minor_units: int = Field(..., ge=0)
    currency: str
    success_url: str
    cancel_url: str
    # Our own order id; providers that mint their own reference ignore it
    order_id: str


class CheckoutRedirect(BaseModel):
    reference: str
    redirect_url: str


class PaymentEvent(BaseModel):
    """
    A payment notification normalized across providers.

    ``tenant_id``, ``user_id`` and ``pass_id`` may be missing when the
    provider only echoes the reference back; the reconciliation handler
    fills them in from the stored checkout.
    """

    provider: str
    event_id: str
    event_type: str
    outcome: PaymentOutcome
    reference: Optional[str] = None
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    pass_id: Optional[str] = None
    amount_minor_units: Optional[int] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class PaymentProvider(ABC):
    name: str

    @abstractmethod
    def create_checkout(self, request: CheckoutRequest) -> CheckoutRedirect:
        pass

    @abstractmethod
    def parse_event(self, body: bytes, headers: Mapping[str, str]) -> PaymentEvent:
        """
        Verify and normalize an inbound notification.

        Raises:
            FatalPaymentError: The payload can never be processed
            ServiceTimeoutException: The provider did not answer in time
        """
