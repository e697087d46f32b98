# backend/app/schemas/bookings.py
"""
Booking schemas for the dance school platform.

A booking request names the class instance and, optionally, the
subscription to draw a credit from. Without one the engine picks the
caller's best usable subscription.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    class_instance_id: str = Field(..., min_length=1)
    subscription_id: Optional[str] = Field(None, min_length=1)


class BookingResponse(StrictModel):
    id: str
    tenant_id: str
    user_id: str
    class_instance_id: str
    subscription_id: str
    status: BookingStatus
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by_role: Optional[str] = None


class BookingEnvelope(StrictModel):
    booking: BookingResponse


class MyBookingItem(BookingResponse):
    starts_at: datetime
    class_title: Optional[str] = None
    instance_cancelled: bool


class MyBookingsResponse(StrictModel):
    bookings: List[MyBookingItem]
