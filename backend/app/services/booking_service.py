# backend/app/services/booking_service.py
"""
Booking Service for the dance school platform.

Couples every booking to a seat on a class instance and a credit on a
subscription. The three writes (seat, credit, booking row) share one
database transaction, so a failure in any of them rolls the others back.
Seat and credit changes are conditional UPDATEs; a request that loses a
race gets Full or NoValidPass instead of overbooking.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, RoleName
from ..core.exceptions import (
    AlreadyBookedException,
    ClassCancelledException,
    ClassFullException,
    InsufficientCreditException,
    NoValidPassException,
    NotFoundException,
    RepositoryException,
)
from ..core.timezone_utils import utc_now
from ..models.booking import Booking
from ..models.subscription import Subscription
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .class_schedule_service import has_capacity
from .subscription_ledger_service import SubscriptionLedgerService, is_usable

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    """Who is acting on a booking."""

    user_id: str
    role: str
    is_platform_admin: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_platform_admin or self.role == RoleName.ADMIN.value


class BookingService(BaseService):
    """Book and cancel seats against subscription credits."""

    def __init__(self, db: Session, ledger: Optional[SubscriptionLedgerService] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.instance_repository = RepositoryFactory.create_class_instance_repository(db)
        self.ledger = ledger or SubscriptionLedgerService(db)

    @BaseService.measure_operation("book")
    def book(
        self,
        tenant_id: str,
        user_id: str,
        class_instance_id: str,
        subscription_id: Optional[str] = None,
    ) -> Booking:
        """
        Book a seat for ``user_id``.

        Checks run in this order: instance exists, instance not cancelled,
        instance has room, subscription usable. Without ``subscription_id``
        the ledger picks the user's best usable subscription.

        Raises:
            NotFoundException: Instance or subscription unknown in this tenant
            ClassCancelledException: The instance is cancelled
            ClassFullException: No seat left, including lost races
            NoValidPassException: No usable subscription or its credits ran out
            AlreadyBookedException: The user already holds a seat on the instance
        """
        now = utc_now()
        instance = self.instance_repository.get_for_tenant(class_instance_id, tenant_id)
        if instance is None:
            raise NotFoundException(
                "Class instance not found", details={"class_instance_id": class_instance_id}
            )
        if instance.is_cancelled:
            prometheus_metrics.record_booking_attempt("cancelled_class")
            raise ClassCancelledException(instance.id)
        if not has_capacity(instance):
            prometheus_metrics.record_booking_attempt("full")
            raise ClassFullException(instance.id)

        subscription = self._resolve_subscription(tenant_id, user_id, subscription_id, now)

        if self.booking_repository.get_confirmed_for_user(instance.id, user_id) is not None:
            prometheus_metrics.record_booking_attempt("already_booked")
            raise AlreadyBookedException(instance.id)

        with self.transaction(
            class_instance_id=instance.id, subscription_id=subscription.id, user_id=user_id
        ):
            if not self.instance_repository.try_increment_booked(instance.id):
                fresh = self.instance_repository.reload(instance.id)
                prometheus_metrics.record_booking_attempt(
                    "cancelled_class" if fresh is not None and fresh.is_cancelled else "full"
                )
                if fresh is not None and fresh.is_cancelled:
                    raise ClassCancelledException(instance.id)
                raise ClassFullException(instance.id)
            try:
                self.ledger.consume_credit(subscription.id, now)
            except InsufficientCreditException as exc:
                prometheus_metrics.record_booking_attempt("no_valid_pass")
                raise NoValidPassException(details={"subscription_id": subscription.id}) from exc
            try:
                booking = self.booking_repository.create(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    class_instance_id=instance.id,
                    subscription_id=subscription.id,
                    status=BookingStatus.CONFIRMED.value,
                    created_at=now,
                )
            except RepositoryException as exc:
                # Unique index on confirmed (instance, user) caught a concurrent duplicate
                if isinstance(exc.__cause__, IntegrityError):
                    prometheus_metrics.record_booking_attempt("already_booked")
                    raise AlreadyBookedException(instance.id) from exc
                raise

        self.instance_repository.reload(instance.id)
        prometheus_metrics.record_booking_attempt("created")
        self.logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "class_instance_id": instance.id,
                "subscription_id": subscription.id,
                "user_id": user_id,
            },
        )
        return booking

    def _resolve_subscription(
        self, tenant_id: str, user_id: str, subscription_id: Optional[str], now: datetime
    ) -> Subscription:
        if subscription_id is None:
            subscription = self.ledger.select_for_booking(tenant_id, user_id, now)
            if subscription is None:
                prometheus_metrics.record_booking_attempt("no_valid_pass")
                raise NoValidPassException()
            return subscription

        subscription = self.ledger.get_for_user(tenant_id, user_id, subscription_id)
        if not is_usable(subscription, now):
            prometheus_metrics.record_booking_attempt("no_valid_pass")
            raise NoValidPassException(details={"subscription_id": subscription.id})
        return subscription

    def get_booking(self, tenant_id: str, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_tenant(booking_id, tenant_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, tenant_id: str, booking_id: str, actor: Actor) -> Booking:
        """
        Cancel a booking and give back its seat and credit.

        Cancelling twice is a no-op. Works even when the class instance has
        been cancelled in the meantime. Only the booking's owner or an admin
        may cancel; anyone else sees NotFound.
        """
        booking = self.get_booking(tenant_id, booking_id)
        if booking.user_id != actor.user_id and not actor.is_admin:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})

        if booking.status == BookingStatus.CANCELLED.value:
            return booking

        now = utc_now()
        with self.transaction(booking_id=booking.id, subscription_id=booking.subscription_id):
            if not self.booking_repository.mark_cancelled(booking.id, actor.user_id, actor.role, now):
                return self.booking_repository.reload(booking.id) or booking
            if not self.instance_repository.decrement_booked(booking.class_instance_id):
                self.logger.warning(
                    "Seat count already at zero on cancel",
                    extra={
                        "booking_id": booking.id,
                        "class_instance_id": booking.class_instance_id,
                    },
                )
            self.ledger.restore_credit(booking.subscription_id, now)

        booking = self.booking_repository.reload(booking.id) or booking
        self.instance_repository.reload(booking.class_instance_id)
        prometheus_metrics.record_booking_cancellation(actor.role)
        self.logger.info(
            "Booking cancelled",
            extra={
                "booking_id": booking.id,
                "class_instance_id": booking.class_instance_id,
                "subscription_id": booking.subscription_id,
                "actor_role": actor.role,
            },
        )
        return booking

    def list_for_user(self, tenant_id: str, user_id: str) -> List[Booking]:
        return self.booking_repository.list_for_user(tenant_id, user_id)
