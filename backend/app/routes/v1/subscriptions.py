# backend/app/routes/v1/subscriptions.py
"""
Subscription routes - API v1

Endpoints:
    GET /me - The caller's subscriptions in the tenant
    POST /status - Where a payment stands after checkout
"""

from fastapi import APIRouter, Depends

from ...api.dependencies import (
    TenantContext,
    get_checkout_service,
    get_subscription_ledger_service,
    get_tenant_context,
)
from ...schemas.subscriptions import (
    SubscriptionListResponse,
    SubscriptionStatusRequest,
    SubscriptionStatusResponse,
)
from ...services.checkout_service import CheckoutService
from ...services.subscription_ledger_service import SubscriptionLedgerService
from .passes import subscription_response

router = APIRouter(tags=["subscriptions-v1"])


@router.get("/me", response_model=SubscriptionListResponse)
def list_my_subscriptions(
    context: TenantContext = Depends(get_tenant_context),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> SubscriptionListResponse:
    subscriptions = ledger.list_for_user(context.tenant_id, context.user_id)
    return SubscriptionListResponse(
        subscriptions=[subscription_response(s) for s in subscriptions]
    )


@router.post("/status", response_model=SubscriptionStatusResponse)
def payment_status(
    payload: SubscriptionStatusRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: CheckoutService = Depends(get_checkout_service),
) -> SubscriptionStatusResponse:
    status, subscription, error = service.payment_status(
        context.tenant_id, context.user_id, payload.reference
    )
    return SubscriptionStatusResponse(
        status=status,
        subscription=subscription_response(subscription) if subscription else None,
        error=error,
    )
