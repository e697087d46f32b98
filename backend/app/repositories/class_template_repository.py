"""Repository for class templates and their weekly schedule."""

from __future__ import annotations

from typing import List

from sqlalchemy.orm import Session, selectinload

from app.models.class_template import ClassTemplate
from app.repositories.base_repository import BaseRepository


class ClassTemplateRepository(BaseRepository[ClassTemplate]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, ClassTemplate)

    def list_for_tenant(self, tenant_id: str) -> List[ClassTemplate]:
        query = (
            self._build_query()
            .options(selectinload(ClassTemplate.schedule))
            .filter(ClassTemplate.tenant_id == tenant_id)
            .order_by(ClassTemplate.title.asc())
        )
        return self._execute_query(query)
