# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Book a seat on a class instance
    GET /me - The caller's bookings
    POST /{booking_id}/cancel - Cancel a booking (owner or admin)
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, status

from ...api.dependencies import TenantContext, get_booking_service, get_tenant_context
from ...core.exceptions import DomainException
from ...schemas.bookings import (
    BookingCreate,
    BookingEnvelope,
    BookingResponse,
    MyBookingItem,
    MyBookingsResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.post("", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    context: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingEnvelope:
    """
    Book a seat for the caller.

    Without ``subscriptionId`` the caller's best usable subscription pays.
    Answers 400 NO_VALID_PASS, 409 CLASS_FULL, 409 CLASS_CANCELLED or
    409 ALREADY_BOOKED when the seat cannot be taken.
    """
    try:
        booking = booking_service.book(
            context.tenant_id,
            context.user_id,
            payload.class_instance_id,
            payload.subscription_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.get("/me", response_model=MyBookingsResponse)
def list_my_bookings(
    context: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> MyBookingsResponse:
    items = []
    for booking in booking_service.list_for_user(context.tenant_id, context.user_id):
        instance = booking.class_instance
        items.append(
            MyBookingItem(
                **BookingResponse.model_validate(booking).model_dump(),
                starts_at=instance.starts_at,
                class_title=instance.template.title if instance.template else None,
                instance_cancelled=instance.is_cancelled,
            )
        )
    return MyBookingsResponse(bookings=items)


@router.post("/{booking_id}/cancel", response_model=BookingEnvelope)
def cancel_booking(
    booking_id: str,
    context: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingEnvelope:
    """Cancel a booking. Cancelling an already cancelled booking returns it unchanged."""
    try:
        booking = booking_service.cancel_booking(context.tenant_id, booking_id, context.actor())
    except DomainException as e:
        handle_domain_exception(e)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))
