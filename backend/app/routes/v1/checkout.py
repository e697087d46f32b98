# backend/app/routes/v1/checkout.py
"""
Checkout routes - API v1

Endpoints:
    POST /{provider} - Start a hosted checkout for a pass
"""

from typing import NoReturn

from fastapi import APIRouter, Depends, status

from ...api.dependencies import TenantContext, get_checkout_service, get_tenant_context
from ...core.exceptions import DomainException
from ...schemas.checkout import CheckoutCreate, CheckoutResponse
from ...services.checkout_service import CheckoutService

router = APIRouter(tags=["checkout-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.post("/{provider}", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
def start_checkout(
    provider: str,
    payload: CheckoutCreate,
    context: TenantContext = Depends(get_tenant_context),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """
    Start a checkout with ``stripe`` or ``vipps``.

    The subscription is created later, when the provider confirms payment.
    """
    try:
        checkout, redirect_url = service.start_checkout(
            context.tenant_id, context.user_id, provider.lower(), payload
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CheckoutResponse(
        provider=checkout.provider, reference=checkout.reference, redirect_url=redirect_url
    )
