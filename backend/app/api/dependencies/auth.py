# backend/app/api/dependencies/auth.py
"""
Authentication and tenant-context dependencies.

Every tenant-scoped route resolves two things: who is calling (from the
bearer token) and which school they are acting in (from the tenant
header). Members act within their own tenant; platform admins may act in
any tenant.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ...auth import decode_access_token, token_roles
from ...core.config import settings
from ...core.constants import TENANT_ID_HEADER, TENANT_SLUG_HEADER
from ...core.enums import RoleName
from ...core.exceptions import (
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ...models.tenant import Tenant
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from ...services.booking_service import Actor
from .database import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """The caller as asserted by a verified token."""

    user_id: str
    roles: List[str] = field(default_factory=list)
    claims: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TenantContext:
    tenant: Tenant
    user_id: str
    user: Optional[User]
    is_platform_admin: bool = False

    @property
    def tenant_id(self) -> str:
        return self.tenant.id

    @property
    def role(self) -> str:
        if self.user is not None and self.user.tenant_id == self.tenant.id:
            return self.user.role
        return RoleName.ADMIN.value if self.is_platform_admin else RoleName.STUDENT.value

    @property
    def is_admin(self) -> bool:
        return self.is_platform_admin or self.role == RoleName.ADMIN.value

    def actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role, is_platform_admin=self.is_platform_admin)


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedException()
    payload = decode_access_token(credentials.credentials)
    return Principal(user_id=payload["sub"], roles=token_roles(payload), claims=payload)


def get_tenant(request: Request, db: Session = Depends(get_db)) -> Tenant:
    """
    Resolve the tenant named by ``X-Tenant-Slug`` or ``X-Tenant-Id``.

    Unknown and suspended tenants are both reported as missing.
    """
    repository = RepositoryFactory.create_tenant_repository(db)
    slug = request.headers.get(TENANT_SLUG_HEADER)
    tenant_id = request.headers.get(TENANT_ID_HEADER)
    if slug:
        tenant = repository.get_by_slug(slug.strip().lower())
    elif tenant_id:
        tenant = repository.get_by_id(tenant_id.strip())
    else:
        raise ValidationException(
            "Tenant header is required", code="TENANT_REQUIRED", details={"header": TENANT_SLUG_HEADER}
        )
    if tenant is None or not tenant.is_active:
        raise NotFoundException("Tenant not found", details={"tenant": slug or tenant_id})
    return tenant


def get_tenant_context(
    principal: Principal = Depends(get_principal),
    tenant: Tenant = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TenantContext:
    user_repository = RepositoryFactory.create_user_repository(db)
    member = user_repository.get_tenant_member(principal.user_id, tenant.id)
    user = member or user_repository.get_by_id(principal.user_id)
    is_platform_admin = settings.platform_admin_role in principal.roles or bool(
        user is not None and user.is_platform_admin
    )

    if member is None and not is_platform_admin:
        logger.info(
            "User is not a member of tenant",
            extra={"user_id": principal.user_id, "tenant_id": tenant.id},
        )
        raise ForbiddenException("You are not a member of this school")

    return TenantContext(
        tenant=tenant,
        user_id=principal.user_id,
        user=user,
        is_platform_admin=is_platform_admin,
    )


def require_tenant_admin(context: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    if not context.is_admin:
        raise ForbiddenException("Admin access required")
    return context
