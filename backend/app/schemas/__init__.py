# backend/app/schemas/__init__.py
"""
Pydantic schemas for the DanceHub API.

Request models reject unknown fields; every schema speaks camelCase on the wire.
"""

from .bookings import BookingCreate, BookingEnvelope, BookingResponse, MyBookingsResponse
from .checkout import CheckoutCreate, CheckoutResponse, PaymentEventPayload, WebhookAck
from .class_schedule import (
    ClassInstanceResponse,
    ClassTemplateCreate,
    ClassTemplateResponse,
    WeeklyScheduleItem,
)
from .passes import PassCreate, PassResponse, PassUpdate, UpgradeOptionsResponse
from .subscriptions import SubscriptionGrant, SubscriptionResponse, SubscriptionStatusResponse

__all__ = [
    "BookingCreate",
    "BookingEnvelope",
    "BookingResponse",
    "CheckoutCreate",
    "CheckoutResponse",
    "ClassInstanceResponse",
    "ClassTemplateCreate",
    "ClassTemplateResponse",
    "MyBookingsResponse",
    "PassCreate",
    "PassResponse",
    "PassUpdate",
    "PaymentEventPayload",
    "SubscriptionGrant",
    "SubscriptionResponse",
    "SubscriptionStatusResponse",
    "UpgradeOptionsResponse",
    "WebhookAck",
    "WeeklyScheduleItem",
]
