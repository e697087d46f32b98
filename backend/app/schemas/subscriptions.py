"""Subscription ledger schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from ..core.enums import PaymentProviderName
from ._strict_base import StrictModel, StrictRequestModel


class SubscriptionGrant(StrictRequestModel):
    """Admin-issued subscription for an already settled payment."""

    user_id: str = Field(..., min_length=1)
    external_payment_reference: str = Field(..., min_length=1, max_length=255)
    payment_provider: PaymentProviderName = PaymentProviderName.INTERNAL


class SubscriptionResponse(StrictModel):
    id: str
    tenant_id: str
    user_id: str
    pass_definition_id: str
    pass_name: str
    pass_kind: str
    pass_version: int
    purchase_price_minor_units: int
    credit_limit: Optional[int] = None
    remaining_credits: Optional[int] = None
    start_at: datetime
    end_at: datetime
    is_active: bool
    deactivation_reason: Optional[str] = None
    is_usable: bool = False
    external_payment_reference: str
    payment_provider: str
    created_at: datetime


class SubscriptionEnvelope(StrictModel):
    subscription: SubscriptionResponse


class SubscriptionListResponse(StrictModel):
    subscriptions: List[SubscriptionResponse]


class SubscriptionStatusRequest(StrictRequestModel):
    reference: str = Field(..., min_length=1, max_length=255)


class SubscriptionStatusResponse(StrictModel):
    status: Literal["found", "processing", "error", "pending"]
    subscription: Optional[SubscriptionResponse] = None
    error: Optional[str] = None
