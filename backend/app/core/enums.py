# backend/app/core/enums.py
"""
Core enums for the dance school platform.

Values are stored as plain strings in the database, so changing a value
requires a data migration.
"""

from enum import Enum


class RoleName(str, Enum):
    """Tenant-scoped roles carried on the user record."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class PassKind(str, Enum):
    """Kinds of purchasable pass."""

    SINGLE = "single"
    MULTI_PASS = "multi-pass"
    CLIPCARD = "clipcard"
    UNLIMITED = "unlimited"

    @property
    def is_unlimited(self) -> bool:
        return self is PassKind.UNLIMITED

    @property
    def uses_credit_limit(self) -> bool:
        return self in (PassKind.MULTI_PASS, PassKind.CLIPCARD)


class ValidityType(str, Enum):
    """How a pass turns into a subscription end timestamp."""

    DAYS = "days"
    DATE = "date"


class DeactivationReason(str, Enum):
    """Why a subscription stopped being active."""

    CREDITS_EXHAUSTED = "credits_exhausted"
    EXPIRED = "expired"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses. CANCELLED is terminal."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentProviderName(str, Enum):
    STRIPE = "stripe"
    VIPPS = "vipps"
    INTERNAL = "internal"


class PaymentOutcome(str, Enum):
    """Normalized payment state across providers."""

    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


class CheckoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
