# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.checkout_service import CheckoutService
from ...services.class_schedule_service import ClassScheduleService
from ...services.pass_catalog_service import PassCatalogService
from ...services.payment_reconciliation_service import PaymentReconciliationService
from ...services.subscription_ledger_service import SubscriptionLedgerService
from .database import get_db


def get_pass_catalog_service(db: Session = Depends(get_db)) -> PassCatalogService:
    return PassCatalogService(db)


def get_subscription_ledger_service(db: Session = Depends(get_db)) -> SubscriptionLedgerService:
    return SubscriptionLedgerService(db)


def get_class_schedule_service(
    db: Session = Depends(get_db),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> ClassScheduleService:
    return ClassScheduleService(db, ledger)


def get_booking_service(
    db: Session = Depends(get_db),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> BookingService:
    """
    Get BookingService instance.

    Shares the request's ledger so seat and credit changes run on one session.
    """
    return BookingService(db, ledger)


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(db)


def get_payment_reconciliation_service(
    db: Session = Depends(get_db),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> PaymentReconciliationService:
    return PaymentReconciliationService(db, ledger)
