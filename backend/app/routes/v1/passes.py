# backend/app/routes/v1/passes.py
"""
Pass catalog routes - API v1

Versioned pass endpoints under /api/v1/passes.
All business logic delegated to PassCatalogService and SubscriptionLedgerService.

Endpoints:
    GET / - Active passes of the tenant, cheapest first
    POST / - Create a pass (admin)
    GET /{pass_id} - One pass
    PUT /{pass_id} - Update a pass (admin)
    DELETE /{pass_id} - Delete a pass without active subscriptions (admin)
    GET /{pass_id}/upgrade-options - Upgrade targets for a subscription
    POST /{pass_id}/subscriptions - Grant a subscription for a settled payment (admin)
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, Query, Response, status

from ...api.dependencies import (
    TenantContext,
    get_pass_catalog_service,
    get_subscription_ledger_service,
    get_tenant_context,
    require_tenant_admin,
)
from ...core.exceptions import DomainException, NotFoundException
from ...core.timezone_utils import utc_now
from ...models.subscription import Subscription
from ...schemas.passes import (
    PassCreate,
    PassListResponse,
    PassResponse,
    PassUpdate,
    UpgradeOption,
    UpgradeOptionsResponse,
)
from ...schemas.subscriptions import SubscriptionEnvelope, SubscriptionGrant, SubscriptionResponse
from ...services.pass_catalog_service import PassCatalogService
from ...services.subscription_ledger_service import SubscriptionLedgerService, is_usable

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["passes-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


def subscription_response(subscription: Subscription) -> SubscriptionResponse:
    response = SubscriptionResponse.model_validate(subscription)
    response.is_usable = is_usable(subscription, utc_now())
    return response


@router.get("", response_model=PassListResponse)
def list_passes(
    context: TenantContext = Depends(get_tenant_context),
    service: PassCatalogService = Depends(get_pass_catalog_service),
) -> PassListResponse:
    passes = service.list_active_passes(context.tenant_id)
    return PassListResponse(passes=[PassResponse.model_validate(p) for p in passes])


@router.post("", response_model=PassResponse, status_code=status.HTTP_201_CREATED)
def create_pass(
    payload: PassCreate,
    context: TenantContext = Depends(require_tenant_admin),
    service: PassCatalogService = Depends(get_pass_catalog_service),
) -> PassResponse:
    try:
        pass_def = service.create_pass(context.tenant_id, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return PassResponse.model_validate(pass_def)


@router.get("/{pass_id}", response_model=PassResponse)
def get_pass(
    pass_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: PassCatalogService = Depends(get_pass_catalog_service),
) -> PassResponse:
    try:
        return PassResponse.model_validate(service.get_pass(context.tenant_id, pass_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{pass_id}", response_model=PassResponse)
def update_pass(
    pass_id: str,
    payload: PassUpdate,
    context: TenantContext = Depends(require_tenant_admin),
    service: PassCatalogService = Depends(get_pass_catalog_service),
) -> PassResponse:
    try:
        pass_def = service.update_pass(context.tenant_id, pass_id, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return PassResponse.model_validate(pass_def)


@router.delete("/{pass_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pass(
    pass_id: str,
    context: TenantContext = Depends(require_tenant_admin),
    service: PassCatalogService = Depends(get_pass_catalog_service),
) -> Response:
    try:
        service.delete_pass(context.tenant_id, pass_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{pass_id}/upgrade-options", response_model=UpgradeOptionsResponse)
def get_upgrade_options(
    pass_id: str,
    subscription_id: str = Query(..., alias="subscriptionId"),
    context: TenantContext = Depends(get_tenant_context),
    service: PassCatalogService = Depends(get_pass_catalog_service),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> UpgradeOptionsResponse:
    """
    Passes the holder of ``subscriptionId`` may upgrade to.

    ``pass_id`` must be the pass the subscription was bought from.
    """
    try:
        subscription = ledger.get_for_user(context.tenant_id, context.user_id, subscription_id)
        if subscription.pass_definition_id != pass_id:
            raise NotFoundException(
                "Subscription not found for this pass",
                details={"pass_id": pass_id, "subscription_id": subscription_id},
            )
        candidates = service.upgrade_options(context.tenant_id, subscription)
    except DomainException as e:
        handle_domain_exception(e)

    paid = subscription.purchase_price_minor_units
    return UpgradeOptionsResponse(
        subscription_id=subscription.id,
        current_price_minor_units=paid,
        options=[
            UpgradeOption(
                pass_=PassResponse.model_validate(candidate),
                price_difference_minor_units=candidate.price_minor_units - paid,
            )
            for candidate in candidates
        ],
    )


@router.post(
    "/{pass_id}/subscriptions",
    response_model=SubscriptionEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def grant_subscription(
    pass_id: str,
    payload: SubscriptionGrant,
    context: TenantContext = Depends(require_tenant_admin),
    ledger: SubscriptionLedgerService = Depends(get_subscription_ledger_service),
) -> SubscriptionEnvelope:
    """Create the subscription for a payment settled outside the webhook flow."""
    try:
        subscription = ledger.create_from_payment(
            context.tenant_id,
            payload.user_id,
            pass_id,
            payload.external_payment_reference,
            payment_provider=payload.payment_provider.value,
        )
    except DomainException as e:
        handle_domain_exception(e)
    logger.info(
        "Subscription granted by admin",
        extra={"subscription_id": subscription.id, "granted_by": context.user_id},
    )
    return SubscriptionEnvelope(subscription=subscription_response(subscription))
