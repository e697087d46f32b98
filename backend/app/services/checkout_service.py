# backend/app/services/checkout_service.py
"""
Checkout Service for the dance school platform.

Starts a hosted checkout with a payment provider and remembers it, so a
provider callback that carries only a reference can be tied back to the
tenant, user and pass it paid for.
"""

import logging
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import CheckoutStatus
from ..core.exceptions import NotFoundException, ValidationException
from ..core.ulid_helper import generate_ulid
from ..models.payment_checkout import PaymentCheckout
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from ..schemas.checkout import CheckoutCreate
from .base import BaseService
from .payments.base import CheckoutRequest, PaymentProvider
from .payments.factory import create_payment_provider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str], PaymentProvider]


class CheckoutService(BaseService):
    """Outbound checkouts and the post-checkout status check."""

    def __init__(self, db: Session, provider_factory: Optional[ProviderFactory] = None):
        super().__init__(db)
        self.provider_factory = provider_factory or create_payment_provider
        self.pass_repository = RepositoryFactory.create_pass_repository(db)
        self.checkout_repository = RepositoryFactory.create_payment_checkout_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.webhook_repository = RepositoryFactory.create_webhook_event_repository(db)

    @BaseService.measure_operation("start_checkout")
    def start_checkout(
        self, tenant_id: str, user_id: str, provider_name: str, data: CheckoutCreate
    ) -> Tuple[PaymentCheckout, str]:
        """Start a hosted checkout and return the stored row with the redirect URL."""
        pass_def = self.pass_repository.get_for_tenant(data.pass_id, tenant_id)
        if pass_def is None:
            raise NotFoundException("Pass not found", details={"pass_id": data.pass_id})
        if not pass_def.is_active:
            raise ValidationException(
                "This pass is no longer for sale", details={"pass_id": pass_def.id}
            )

        provider = self.provider_factory(provider_name)
        base_url = settings.public_app_url.rstrip("/")
        redirect = provider.create_checkout(
            CheckoutRequest(
                tenant_id=tenant_id,
                user_id=user_id,
                pass_id=pass_def.id,
                description=pass_def.name,
                amount_minor_units=pass_def.price_minor_units,
                currency=settings.currency,
                success_url=data.success_url or f"{base_url}/payment/success",
                cancel_url=data.cancel_url or f"{base_url}/payment/cancelled",
                order_id=f"pass-{generate_ulid()}",
            )
        )

        with self.transaction(payment_reference=redirect.reference, user_id=user_id):
            checkout = self.checkout_repository.create(
                provider=provider.name,
                reference=redirect.reference,
                tenant_id=tenant_id,
                user_id=user_id,
                pass_definition_id=pass_def.id,
                amount_minor_units=pass_def.price_minor_units,
                currency=settings.currency,
                status=CheckoutStatus.PENDING.value,
            )

        self.logger.info(
            "Checkout started",
            extra={
                "provider": provider.name,
                "payment_reference": redirect.reference,
                "pass_id": pass_def.id,
                "user_id": user_id,
            },
        )
        return checkout, redirect.redirect_url

    def payment_status(
        self, tenant_id: str, user_id: str, reference: str
    ) -> Tuple[str, Optional[Subscription], Optional[str]]:
        """
        Where a payment stands after the user returns from checkout.

        Returns ``(status, subscription, error)`` with status one of
        ``found``, ``processing``, ``error`` or ``pending``.
        """
        subscription = self.subscription_repository.get_by_reference(reference)
        if subscription is not None:
            if subscription.tenant_id != tenant_id or subscription.user_id != user_id:
                raise NotFoundException("Payment not found", details={"reference": reference})
            return "found", subscription, None

        event = self.webhook_repository.latest_for_reference(reference)
        if event is None:
            return "pending", None, None
        if event.status == "failed":
            return "error", None, event.processing_error
        if event.status in ("received", "processing"):
            return "processing", None, None
        return "pending", None, None
