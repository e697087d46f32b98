# backend/app/services/subscription_ledger_service.py
"""
Subscription Ledger Service for the dance school platform.

Turns a paid pass into a time-bounded subscription and keeps its credit
count honest. Credit changes are conditional UPDATEs issued through
SubscriptionRepository; this service decides which error a failed guard
means.

consume_credit and restore_credit run inside the caller's transaction and
never commit, so the booking engine can couple them with the capacity
change. create_from_payment owns its own transaction.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import PassKind, PaymentProviderName, ValidityType
from ..core.exceptions import (
    DuplicatePaymentException,
    InsufficientCreditException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.pass_definition import PassDefinition
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .pass_catalog_service import credits_for

logger = logging.getLogger(__name__)


def is_usable(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    """
    Whether ``subscription`` can pay for a booking at ``now``.

    Active, not past its end, and either unlimited or holding a credit.
    Never cache the answer across requests.
    """
    now = now or utc_now()
    if not subscription.is_active:
        return False
    if now > ensure_utc(subscription.end_at):
        return False
    return subscription.remaining_credits is None or subscription.remaining_credits > 0


def compute_end_at(pass_def: PassDefinition, start_at: datetime) -> datetime:
    if pass_def.validity_type == ValidityType.DATE.value:
        if pass_def.expiry_date is None:
            raise ValidationException("Pass has date validity but no expiry_date")
        return ensure_utc(pass_def.expiry_date)
    if not pass_def.validity_days or pass_def.validity_days < 1:
        raise ValidationException("Pass has day validity but no validity_days")
    return start_at + timedelta(days=pass_def.validity_days)


class SubscriptionLedgerService(BaseService):
    """Creation, credit bookkeeping and lazy expiry of subscriptions."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.pass_repository = RepositoryFactory.create_pass_repository(db)
        self.tenant_repository = RepositoryFactory.create_tenant_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def get_by_reference(self, external_payment_reference: str) -> Optional[Subscription]:
        return self.subscription_repository.get_by_reference(external_payment_reference)

    def get_for_user(self, tenant_id: str, user_id: str, subscription_id: str) -> Subscription:
        """Load a subscription owned by ``user_id``; anything else is reported as missing."""
        subscription = self.subscription_repository.get_for_tenant(subscription_id, tenant_id)
        if subscription is None or subscription.user_id != user_id:
            raise NotFoundException(
                "Subscription not found", details={"subscription_id": subscription_id}
            )
        return subscription

    @BaseService.measure_operation("create_from_payment")
    def create_from_payment(
        self,
        tenant_id: str,
        user_id: str,
        pass_id: str,
        external_payment_reference: str,
        payment_provider: str = PaymentProviderName.INTERNAL.value,
    ) -> Subscription:
        """
        Create the one subscription a payment entitles the user to.

        Raises:
            DuplicatePaymentException: The reference already produced a subscription
            NotFoundException: Tenant, user or pass is unknown within the tenant
        """
        existing = self.subscription_repository.get_by_reference(external_payment_reference)
        if existing is not None:
            raise DuplicatePaymentException(external_payment_reference, existing.id)

        tenant = self.tenant_repository.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant not found", details={"tenant_id": tenant_id})
        if self.user_repository.get_tenant_member(user_id, tenant_id) is None:
            raise NotFoundException("User not found", details={"user_id": user_id})
        pass_def = self.pass_repository.get_for_tenant(pass_id, tenant_id)
        if pass_def is None:
            raise NotFoundException("Pass not found", details={"pass_id": pass_id})

        start_at = utc_now()
        end_at = compute_end_at(pass_def, start_at)
        credits = credits_for(PassKind(pass_def.kind), pass_def.class_credit_limit)

        try:
            with self.transaction():
                subscription = self.subscription_repository.create(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    pass_definition_id=pass_def.id,
                    pass_name=pass_def.name,
                    pass_kind=pass_def.kind,
                    pass_version=pass_def.version,
                    purchase_price_minor_units=pass_def.price_minor_units,
                    credit_limit=credits,
                    remaining_credits=credits,
                    start_at=start_at,
                    end_at=end_at,
                    is_active=True,
                    payment_provider=payment_provider,
                    external_payment_reference=external_payment_reference,
                )
        except ServiceException:
            # A concurrent delivery may have inserted the same reference first.
            winner = self.subscription_repository.get_by_reference(external_payment_reference)
            if winner is not None:
                raise DuplicatePaymentException(external_payment_reference, winner.id)
            raise

        self.logger.info(
            "Subscription created from payment",
            extra={
                "subscription_id": subscription.id,
                "tenant_id": tenant_id,
                "user_id": user_id,
                "pass_id": pass_id,
                "payment_reference": external_payment_reference,
            },
        )
        return subscription

    def consume_credit(self, subscription_id: str, now: Optional[datetime] = None) -> Subscription:
        """
        Take one credit. Does not commit.

        Spending the last credit deactivates the subscription. Unlimited
        subscriptions are left as they are.
        """
        now = now or utc_now()
        if not self.subscription_repository.try_consume_credit(subscription_id, now):
            if self.subscription_repository.get_by_id(subscription_id) is None:
                raise NotFoundException(
                    "Subscription not found", details={"subscription_id": subscription_id}
                )
            raise InsufficientCreditException(subscription_id)
        return self.subscription_repository.reload(subscription_id)

    def restore_credit(self, subscription_id: str, now: Optional[datetime] = None) -> Subscription:
        """
        Give one credit back. Does not commit.

        Never exceeds the purchased limit; a no-op for unlimited subscriptions.
        """
        now = now or utc_now()
        restored = self.subscription_repository.restore_credit(subscription_id, now)
        subscription = self.subscription_repository.reload(subscription_id)
        if subscription is None:
            raise NotFoundException(
                "Subscription not found", details={"subscription_id": subscription_id}
            )
        if not restored and subscription.remaining_credits is not None:
            self.logger.warning(
                "Credit restore skipped at limit",
                extra={"subscription_id": subscription_id, "credits": subscription.remaining_credits},
            )
        return subscription

    @BaseService.measure_operation("list_for_user")
    def list_for_user(self, tenant_id: str, user_id: str) -> List[Subscription]:
        """The user's subscriptions, newest first, with lapsed ones flipped inactive."""
        now = utc_now()
        with self.transaction():
            expired = self.subscription_repository.expire_lapsed(tenant_id, user_id, now)
        if expired:
            self.logger.info(
                "Expired lapsed subscriptions",
                extra={"tenant_id": tenant_id, "user_id": user_id, "count": expired},
            )
            self.db.expire_all()
        return self.subscription_repository.list_for_user(tenant_id, user_id)

    def select_for_booking(
        self, tenant_id: str, user_id: str, now: Optional[datetime] = None
    ) -> Optional[Subscription]:
        """
        Pick the subscription a booking should draw from.

        A usable unlimited subscription wins; otherwise the usable clip-based
        one that expires soonest.
        """
        now = now or utc_now()
        usable = self.subscription_repository.list_usable_for_user(tenant_id, user_id, now)
        for subscription in usable:
            if subscription.is_unlimited:
                return subscription
        return usable[0] if usable else None
