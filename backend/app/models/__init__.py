"""
Database models for the dance school platform.

This module exports all SQLAlchemy models used in the application.
The models are organized by functionality:
- Tenants and users
- Pass catalog and subscriptions
- Class templates, schedules and instances
- Bookings
- Payment checkouts and the webhook ledger
"""

from .booking import Booking
from .class_instance import ClassInstance
from .class_template import ClassTemplate, WeeklyScheduleEntry
from .pass_definition import PassDefinition
from .payment_checkout import PaymentCheckout
from .subscription import Subscription
from .tenant import Tenant
from .user import User
from .webhook_event import WebhookEvent

__all__ = [
    "Booking",
    "ClassInstance",
    "ClassTemplate",
    "PassDefinition",
    "PaymentCheckout",
    "Subscription",
    "Tenant",
    "User",
    "WebhookEvent",
    "WeeklyScheduleEntry",
]
