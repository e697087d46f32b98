# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import (
    Principal,
    TenantContext,
    get_principal,
    get_tenant,
    get_tenant_context,
    require_tenant_admin,
)
from .database import get_db
from .services import (
    get_booking_service,
    get_checkout_service,
    get_class_schedule_service,
    get_pass_catalog_service,
    get_payment_reconciliation_service,
    get_subscription_ledger_service,
)

__all__ = [
    # Auth
    "Principal",
    "TenantContext",
    "get_principal",
    "get_tenant",
    "get_tenant_context",
    "require_tenant_admin",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_checkout_service",
    "get_class_schedule_service",
    "get_pass_catalog_service",
    "get_payment_reconciliation_service",
    "get_subscription_ledger_service",
]
