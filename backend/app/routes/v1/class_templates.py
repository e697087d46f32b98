# backend/app/routes/v1/class_templates.py
"""
Class template routes - API v1

Endpoints:
    GET / - Templates of the tenant with their weekly schedule
    POST / - Create a template (admin)
    POST /{template_id}/instances:generate - Create missing instances (admin)
    DELETE /{template_id} - Hard-delete a template, its instances and bookings (admin)
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, status

from ...api.dependencies import (
    TenantContext,
    get_class_schedule_service,
    get_tenant_context,
    require_tenant_admin,
)
from ...core.exceptions import DomainException
from ...schemas.class_schedule import (
    ClassInstanceResponse,
    ClassTemplateCreate,
    ClassTemplateResponse,
    DeleteTemplateResponse,
    GenerateInstancesResponse,
)
from ...services.class_schedule_service import ClassScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["class-templates-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("", response_model=list[ClassTemplateResponse])
def list_templates(
    context: TenantContext = Depends(get_tenant_context),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> list[ClassTemplateResponse]:
    return [ClassTemplateResponse.model_validate(t) for t in service.list_templates(context.tenant_id)]


@router.post("", response_model=ClassTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: ClassTemplateCreate,
    context: TenantContext = Depends(require_tenant_admin),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> ClassTemplateResponse:
    try:
        template = service.create_template(
            context.tenant_id, payload, default_timezone=context.tenant.timezone
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ClassTemplateResponse.model_validate(template)


@router.post("/{template_id}/instances:generate", response_model=GenerateInstancesResponse)
def generate_instances(
    template_id: str,
    context: TenantContext = Depends(require_tenant_admin),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> GenerateInstancesResponse:
    """Create the template's missing instances. Re-running creates nothing new."""
    try:
        created = service.generate_instances(context.tenant_id, template_id)
    except DomainException as e:
        handle_domain_exception(e)
    return GenerateInstancesResponse(
        instances_created=len(created),
        instances=[ClassInstanceResponse.model_validate(i) for i in created],
    )


@router.delete("/{template_id}", response_model=DeleteTemplateResponse)
def delete_template(
    template_id: str,
    context: TenantContext = Depends(require_tenant_admin),
    service: ClassScheduleService = Depends(get_class_schedule_service),
) -> DeleteTemplateResponse:
    try:
        result = service.delete_template(context.tenant_id, template_id)
    except DomainException as e:
        handle_domain_exception(e)
    return DeleteTemplateResponse(
        instances_deleted=result.instances_deleted, bookings_deleted=result.bookings_deleted
    )
