# backend/app/routes/v1/class_instances.py
"""
Class instance routes - API v1

Endpoints:
    GET / - Upcoming instances with remaining capacity
    POST /{instance_id}/cancel - Cancel one instance (admin)
    POST /{instance_id}/cancel-series - Cancel every future instance of its template (admin)
"""

from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, Query

from ...api.dependencies import (
    TenantContext,
    get_class_schedule_service,
    get_tenant_context,
    require_tenant_admin,
)
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.exceptions import DomainException
from ...schemas.class_schedule import (
    CancelInstanceResponse,
    CancelRequest,
    CancelSeriesResponse,
    ClassInstanceListResponse,
    ClassInstanceResponse,
)
from ...services.class_schedule_service import ClassScheduleService

router = APIRouter(tags=["class-instances-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("", response_model=ClassInstanceListResponse)
def list_upcoming_instances(
    days: int = Query(30, ge=1, le=366),
    include_cancelled: bool = Query(False, alias="includeCancelled"),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    context: TenantContext = Depends(get_tenant_context),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> ClassInstanceListResponse:
    instances = service.list_upcoming(
        context.tenant_id, days=days, include_cancelled=include_cancelled, limit=limit
    )
    return ClassInstanceListResponse(
        instances=[ClassInstanceResponse.model_validate(i) for i in instances]
    )


@router.post("/{instance_id}/cancel", response_model=CancelInstanceResponse)
def cancel_instance(
    instance_id: str,
    payload: Optional[CancelRequest] = Body(None),
    context: TenantContext = Depends(require_tenant_admin),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> CancelInstanceResponse:
    """
    Cancel one instance. Bookings stay confirmed until each is cancelled,
    which is when seats and credits are given back.
    """
    try:
        result = service.cancel_instance(
            context.tenant_id, instance_id, payload.reason if payload else None
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CancelInstanceResponse(
        cancelled_instances=result.cancelled_instances,
        affected_bookings=result.affected_bookings,
    )


@router.post("/{instance_id}/cancel-series", response_model=CancelSeriesResponse)
def cancel_series(
    instance_id: str,
    payload: Optional[CancelRequest] = Body(None),
    context: TenantContext = Depends(require_tenant_admin),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> CancelSeriesResponse:
    try:
        count = service.cancel_series(
            context.tenant_id, instance_id, payload.reason if payload else None
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CancelSeriesResponse(cancelled_instances=count)
