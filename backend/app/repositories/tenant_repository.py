"""Repository for tenant and tenant-user lookups."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.tenant import Tenant
from app.models.user import User
from app.repositories.base_repository import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Tenant)

    def get_by_slug(self, slug: str) -> Optional[Tenant]:
        return self.find_one_by(slug=slug)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, User)

    def get_tenant_member(self, user_id: str, tenant_id: str) -> Optional[User]:
        try:
            return (
                self.db.query(User)
                .filter(User.id == user_id, User.tenant_id == tenant_id)
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load tenant member %s: %s", user_id, str(exc))
            raise RepositoryException("Failed to load user") from exc
