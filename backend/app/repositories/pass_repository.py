"""Repository for the pass catalog."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.database import with_db_retry
from app.models.pass_definition import PassDefinition
from app.repositories.base_repository import BaseRepository


class PassRepository(BaseRepository[PassDefinition]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, PassDefinition)

    def list_active(self, tenant_id: str) -> List[PassDefinition]:
        """Active passes of a tenant, cheapest first."""
        query = (
            self._build_query()
            .filter(PassDefinition.tenant_id == tenant_id, PassDefinition.is_active.is_(True))
            .order_by(PassDefinition.price_minor_units.asc(), PassDefinition.name.asc())
        )
        try:
            # Read-only, so a retry cannot double-apply anything.
            return with_db_retry("list_active_passes", query.all)
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing passes for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to list passes: {str(e)}") from e

    def list_active_priced_above(
        self, tenant_id: str, min_price_minor_units: int, exclude_id: Optional[str] = None
    ) -> List[PassDefinition]:
        query = self._build_query().filter(
            PassDefinition.tenant_id == tenant_id,
            PassDefinition.is_active.is_(True),
            PassDefinition.price_minor_units >= min_price_minor_units,
        )
        if exclude_id:
            query = query.filter(PassDefinition.id != exclude_id)
        return self._execute_query(query.order_by(PassDefinition.price_minor_units.asc()))
