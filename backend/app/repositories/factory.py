# backend/app/repositories/factory.py
"""
Repository Factory for the dance school platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .class_instance_repository import ClassInstanceRepository
    from .class_template_repository import ClassTemplateRepository
    from .pass_repository import PassRepository
    from .payment_checkout_repository import PaymentCheckoutRepository
    from .subscription_repository import SubscriptionRepository
    from .tenant_repository import TenantRepository, UserRepository
    from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_tenant_repository(db: Session) -> "TenantRepository":
        from .tenant_repository import TenantRepository

        return TenantRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .tenant_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_pass_repository(db: Session) -> "PassRepository":
        """Create repository for pass catalog operations."""
        from .pass_repository import PassRepository

        return PassRepository(db)

    @staticmethod
    def create_subscription_repository(db: Session) -> "SubscriptionRepository":
        """Create repository for subscription ledger operations."""
        from .subscription_repository import SubscriptionRepository

        return SubscriptionRepository(db)

    @staticmethod
    def create_class_template_repository(db: Session) -> "ClassTemplateRepository":
        from .class_template_repository import ClassTemplateRepository

        return ClassTemplateRepository(db)

    @staticmethod
    def create_class_instance_repository(db: Session) -> "ClassInstanceRepository":
        """Create repository for class instance capacity operations."""
        from .class_instance_repository import ClassInstanceRepository

        return ClassInstanceRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_payment_checkout_repository(db: Session) -> "PaymentCheckoutRepository":
        from .payment_checkout_repository import PaymentCheckoutRepository

        return PaymentCheckoutRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> "WebhookEventRepository":
        """Create repository for the webhook ledger."""
        from .webhook_event_repository import WebhookEventRepository

        return WebhookEventRepository(db)
