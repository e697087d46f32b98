"""
Repository for subscriptions.

Credit changes are single conditional UPDATE statements. Callers look at
the returned row count to learn whether the guard held; nothing here reads
a counter and writes it back.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, or_, update
from sqlalchemy.orm import Session

from app.core.enums import DeactivationReason
from app.models.subscription import Subscription
from app.repositories.base_repository import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Subscription)

    def get_by_reference(self, external_payment_reference: str) -> Optional[Subscription]:
        return self.find_one_by(external_payment_reference=external_payment_reference)

    def list_for_user(self, tenant_id: str, user_id: str) -> List[Subscription]:
        query = (
            self._build_query()
            .filter(Subscription.tenant_id == tenant_id, Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return self._execute_query(query)

    def list_usable_for_user(
        self, tenant_id: str, user_id: str, now: datetime
    ) -> List[Subscription]:
        """Subscriptions that could pay for a booking right now, soonest expiry first."""
        query = (
            self._build_query()
            .filter(
                Subscription.tenant_id == tenant_id,
                Subscription.user_id == user_id,
                Subscription.is_active.is_(True),
                Subscription.end_at >= now,
                or_(
                    Subscription.remaining_credits.is_(None),
                    Subscription.remaining_credits > 0,
                ),
            )
            .order_by(Subscription.end_at.asc())
        )
        return self._execute_query(query)

    def count_active_for_pass(self, pass_definition_id: str) -> int:
        return self.count(pass_definition_id=pass_definition_id, is_active=True)

    def count_for_pass(self, pass_definition_id: str) -> int:
        return self.count(pass_definition_id=pass_definition_id)

    def try_consume_credit(self, subscription_id: str, now: datetime) -> bool:
        """
        Take one credit if the subscription is usable at ``now``.

        Unlimited subscriptions have NULL credits, which stay NULL. Spending
        the last credit deactivates the row in the same statement.
        """
        last_credit = Subscription.remaining_credits == 1
        statement = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.is_active.is_(True),
                Subscription.end_at >= now,
                or_(
                    Subscription.remaining_credits.is_(None),
                    Subscription.remaining_credits > 0,
                ),
            )
            .values(
                remaining_credits=Subscription.remaining_credits - 1,
                is_active=case((last_credit, False), else_=Subscription.is_active),
                deactivation_reason=case(
                    (last_credit, DeactivationReason.CREDITS_EXHAUSTED.value),
                    else_=Subscription.deactivation_reason,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def restore_credit(self, subscription_id: str, now: datetime) -> bool:
        """
        Give one credit back, never above the purchased limit.

        Reactivates only rows that were switched off for running out of
        credits and whose validity has not ended.
        """
        reactivate = and_(
            Subscription.deactivation_reason == DeactivationReason.CREDITS_EXHAUSTED.value,
            Subscription.end_at >= now,
        )
        statement = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.remaining_credits.is_not(None),
                or_(
                    Subscription.credit_limit.is_(None),
                    Subscription.remaining_credits < Subscription.credit_limit,
                ),
            )
            .values(
                remaining_credits=Subscription.remaining_credits + 1,
                is_active=case((reactivate, True), else_=Subscription.is_active),
                deactivation_reason=case(
                    (reactivate, None), else_=Subscription.deactivation_reason
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def expire_lapsed(self, tenant_id: str, user_id: str, now: datetime) -> int:
        """Flip active-but-ended subscriptions of a user to inactive."""
        statement = (
            update(Subscription)
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.user_id == user_id,
                Subscription.is_active.is_(True),
                Subscription.end_at < now,
            )
            .values(
                is_active=False,
                deactivation_reason=DeactivationReason.EXPIRED.value,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement)

    def reload(self, subscription_id: str) -> Optional[Subscription]:
        """Re-read a row after a conditional update, replacing stale identity-map state."""
        query = self._build_query().populate_existing().filter(Subscription.id == subscription_id)
        return next(iter(self._execute_query(query)), None)
