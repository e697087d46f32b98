# backend/app/services/pass_catalog_service.py
"""
Pass Catalog Service for the dance school platform.

Owns purchasable pass definitions: creation, validated edits with version
bumps, deletion guarded by live subscriptions (retirement once history
exists), and the upgrade path from an existing subscription to a pricier
pass.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import PassKind, ValidityType
from ..core.exceptions import NotFoundException, PassInUseException, ValidationException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.pass_definition import PassDefinition
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from ..schemas.passes import PassCreate, PassUpdate
from .base import BaseService

logger = logging.getLogger(__name__)

_PASS_FIELDS = (
    "name",
    "description",
    "kind",
    "price_minor_units",
    "validity_type",
    "validity_days",
    "expiry_date",
    "class_credit_limit",
    "is_active",
)


def credits_for(kind: PassKind, class_credit_limit: Optional[int]) -> Optional[int]:
    """Credits a freshly bought pass of ``kind`` carries. None means unlimited."""
    if kind is PassKind.UNLIMITED:
        return None
    if kind is PassKind.SINGLE:
        return 1
    return class_credit_limit


def validate_pass_terms(terms: Dict[str, Any], now: datetime) -> None:
    """
    Check a complete set of pass terms.

    ``days`` validity needs ``validity_days >= 1``; ``date`` validity needs an
    ``expiry_date`` strictly after ``now``. Clip-based kinds need at least one
    credit.
    """
    validity_type = ValidityType(terms["validity_type"])
    if validity_type is ValidityType.DAYS:
        days = terms.get("validity_days")
        if days is None or days < 1:
            raise ValidationException(
                "validity_days must be at least 1 for day-based validity",
                details={"field": "validity_days"},
            )
    else:
        expiry = terms.get("expiry_date")
        if expiry is None or ensure_utc(expiry) <= now:
            raise ValidationException(
                "expiry_date must be in the future for date-based validity",
                details={"field": "expiry_date"},
            )

    kind = PassKind(terms["kind"])
    if kind.uses_credit_limit:
        limit = terms.get("class_credit_limit")
        if limit is None or limit < 1:
            raise ValidationException(
                f"class_credit_limit must be at least 1 for {kind.value} passes",
                details={"field": "class_credit_limit"},
            )

    if not (terms.get("name") or "").strip():
        raise ValidationException("name is required", details={"field": "name"})


class PassCatalogService(BaseService):
    """Service for pass definitions within one tenant."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.pass_repository = RepositoryFactory.create_pass_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.checkout_repository = RepositoryFactory.create_payment_checkout_repository(db)

    @BaseService.measure_operation("list_active_passes")
    def list_active_passes(self, tenant_id: str) -> List[PassDefinition]:
        return self.pass_repository.list_active(tenant_id)

    def get_pass(self, tenant_id: str, pass_id: str) -> PassDefinition:
        pass_def = self.pass_repository.get_for_tenant(pass_id, tenant_id)
        if pass_def is None:
            raise NotFoundException("Pass not found", details={"pass_id": pass_id})
        return pass_def

    @BaseService.measure_operation("create_pass")
    def create_pass(self, tenant_id: str, data: PassCreate) -> PassDefinition:
        terms = data.model_dump()
        validate_pass_terms(terms, utc_now())
        terms["kind"] = PassKind(terms["kind"]).value
        terms["validity_type"] = ValidityType(terms["validity_type"]).value
        terms["class_credit_limit"] = credits_for(
            PassKind(terms["kind"]), terms.get("class_credit_limit")
        )
        if terms["validity_type"] == ValidityType.DAYS.value:
            terms["expiry_date"] = None
        else:
            terms["validity_days"] = None

        with self.transaction():
            pass_def = self.pass_repository.create(tenant_id=tenant_id, version=1, **terms)

        self.log_operation("create_pass", tenant_id=tenant_id, pass_id=pass_def.id)
        return pass_def

    @BaseService.measure_operation("update_pass")
    def update_pass(self, tenant_id: str, pass_id: str, data: PassUpdate) -> PassDefinition:
        """
        Apply a partial update and bump the version.

        Validation runs on the merged terms so a change of ``validity_type``
        is checked together with the fields it depends on. Existing
        subscriptions keep their snapshot.
        """
        pass_def = self.get_pass(tenant_id, pass_id)
        changes = data.model_dump(exclude_unset=True)

        merged = {field: getattr(pass_def, field) for field in _PASS_FIELDS}
        merged.update(changes)
        validate_pass_terms(merged, utc_now())

        kind = PassKind(merged["kind"])
        merged["kind"] = kind.value
        merged["validity_type"] = ValidityType(merged["validity_type"]).value
        merged["class_credit_limit"] = credits_for(kind, merged.get("class_credit_limit"))

        with self.transaction():
            for field in _PASS_FIELDS:
                setattr(pass_def, field, merged[field])
            pass_def.version = (pass_def.version or 1) + 1
            self.pass_repository.flush()

        self.log_operation(
            "update_pass", tenant_id=tenant_id, pass_id=pass_id, version=pass_def.version
        )
        return pass_def

    @BaseService.measure_operation("delete_pass")
    def delete_pass(self, tenant_id: str, pass_id: str) -> bool:
        """
        Remove a pass from the catalog.

        Refused while an active subscription holds the pass. A pass that only
        expired subscriptions or checkouts point at is retired instead of
        deleted; those rows keep their foreign key to it.

        Returns:
            True when the row was deleted, False when it was retired
        """
        pass_def = self.get_pass(tenant_id, pass_id)
        active = self.subscription_repository.count_active_for_pass(pass_id)
        if active:
            raise PassInUseException(pass_id, active)

        referenced = bool(
            self.subscription_repository.count_for_pass(pass_id)
            or self.checkout_repository.count_for_pass(pass_id)
        )

        with self.transaction():
            if referenced:
                pass_def.is_active = False
                self.pass_repository.flush()
            else:
                self.pass_repository.delete_entity(pass_def)

        self.log_operation(
            "delete_pass", tenant_id=tenant_id, pass_id=pass_id, retired=referenced
        )
        return not referenced

    @BaseService.measure_operation("upgrade_options")
    def upgrade_options(self, tenant_id: str, subscription: Subscription) -> List[PassDefinition]:
        """
        Passes the holder of ``subscription`` may upgrade to.

        Candidates cost at least the configured step more than what was paid.
        An unlimited pass never upgrades to a limited one, and a clip-based
        pass never upgrades to a single-class pass.
        """
        current_kind = PassKind(subscription.pass_kind)
        floor = subscription.purchase_price_minor_units + settings.upgrade_min_price_difference_minor
        candidates = self.pass_repository.list_active_priced_above(
            tenant_id, floor, exclude_id=subscription.pass_definition_id
        )

        options = []
        for candidate in candidates:
            kind = candidate.pass_kind
            if current_kind is PassKind.UNLIMITED and kind is not PassKind.UNLIMITED:
                continue
            if current_kind.uses_credit_limit and kind is PassKind.SINGLE:
                continue
            options.append(candidate)
        return options
