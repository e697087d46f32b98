"""Repository for outbound checkout records."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.models.payment_checkout import PaymentCheckout
from app.repositories.base_repository import BaseRepository


class PaymentCheckoutRepository(BaseRepository[PaymentCheckout]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, PaymentCheckout)

    def get_by_reference(self, reference: str, provider: Optional[str] = None) -> Optional[PaymentCheckout]:
        if provider:
            return self.find_one_by(provider=provider, reference=reference)
        return self.find_one_by(reference=reference)

    def count_for_pass(self, pass_definition_id: str) -> int:
        return self.count(pass_definition_id=pass_definition_id)
