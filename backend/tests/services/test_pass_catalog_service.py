from datetime import datetime, timedelta, timezone

import pytest

from app.core.enums import CheckoutStatus, PassKind, ValidityType
from app.core.exceptions import NotFoundException, PassInUseException, ValidationException
from app.models.payment_checkout import PaymentCheckout
from app.schemas.passes import PassCreate, PassUpdate
from app.services.pass_catalog_service import PassCatalogService, credits_for


def _create(**overrides) -> PassCreate:
    values = dict(
        name="Five classes",
        kind=PassKind.MULTI_PASS,
        price_minor_units=80000,
        validity_type=ValidityType.DAYS,
        validity_days=60,
        class_credit_limit=5,
    )
    values.update(overrides)
    return PassCreate(**values)


def test_credits_for_each_kind():
    assert credits_for(PassKind.UNLIMITED, 10) is None
    assert credits_for(PassKind.SINGLE, None) == 1
    assert credits_for(PassKind.SINGLE, 8) == 1
    assert credits_for(PassKind.CLIPCARD, 10) == 10


def test_create_pass_starts_at_version_one(db, tenant):
    service = PassCatalogService(db)

    created = service.create_pass(tenant.id, _create())

    assert created.version == 1
    assert created.tenant_id == tenant.id
    assert created.class_credit_limit == 5
    assert created.expiry_date is None


def test_create_unlimited_pass_drops_credit_limit(db, tenant):
    service = PassCatalogService(db)

    created = service.create_pass(
        tenant.id, _create(kind=PassKind.UNLIMITED, class_credit_limit=30)
    )

    assert created.class_credit_limit is None


def test_create_pass_rejects_day_validity_without_days(db, tenant):
    service = PassCatalogService(db)

    with pytest.raises(ValidationException) as exc:
        service.create_pass(tenant.id, _create(validity_days=0))

    assert exc.value.details["field"] == "validity_days"


def test_create_pass_rejects_past_expiry_date(db, tenant):
    service = PassCatalogService(db)
    yesterday = datetime.now(timezone.utc) - timedelta(days=1)

    with pytest.raises(ValidationException):
        service.create_pass(
            tenant.id,
            _create(validity_type=ValidityType.DATE, validity_days=None, expiry_date=yesterday),
        )


def test_create_clipcard_requires_credit_limit(db, tenant):
    service = PassCatalogService(db)

    with pytest.raises(ValidationException) as exc:
        service.create_pass(tenant.id, _create(kind=PassKind.CLIPCARD, class_credit_limit=None))

    assert exc.value.details["field"] == "class_credit_limit"


def test_list_active_passes_is_tenant_scoped(db, tenant, other_tenant, clipcard_pass):
    service = PassCatalogService(db)
    service.create_pass(other_tenant.id, _create(name="Elsewhere"))
    hidden = service.create_pass(tenant.id, _create(name="Retired", is_active=False))

    passes = service.list_active_passes(tenant.id)

    assert [p.id for p in passes] == [clipcard_pass.id]
    assert hidden.id not in {p.id for p in passes}


def test_get_pass_from_other_tenant_is_not_found(db, other_tenant, clipcard_pass):
    service = PassCatalogService(db)

    with pytest.raises(NotFoundException):
        service.get_pass(other_tenant.id, clipcard_pass.id)


def test_update_pass_bumps_version_and_keeps_subscription_snapshot(
    db, tenant, student, clipcard_pass, make_subscription
):
    subscription = make_subscription(student, clipcard_pass)
    service = PassCatalogService(db)

    updated = service.update_pass(
        tenant.id, clipcard_pass.id, PassUpdate(price_minor_units=175000, name="Clipcard 10")
    )
    db.refresh(subscription)

    assert updated.version == 2
    assert updated.price_minor_units == 175000
    assert subscription.pass_name == "10-class clipcard"
    assert subscription.purchase_price_minor_units == 150000
    assert subscription.pass_version == 1


def test_update_pass_validates_merged_terms(db, tenant, clipcard_pass):
    service = PassCatalogService(db)

    with pytest.raises(ValidationException):
        service.update_pass(
            tenant.id, clipcard_pass.id, PassUpdate(validity_type=ValidityType.DATE)
        )

    db.refresh(clipcard_pass)
    assert clipcard_pass.version == 1


def test_delete_pass_with_active_subscription_is_refused(
    db, tenant, student, clipcard_pass, make_subscription
):
    make_subscription(student, clipcard_pass)
    service = PassCatalogService(db)

    with pytest.raises(PassInUseException) as exc:
        service.delete_pass(tenant.id, clipcard_pass.id)

    assert exc.value.code == "PASS_IN_USE"


def test_delete_unused_pass(db, enforce_foreign_keys, tenant, clipcard_pass):
    service = PassCatalogService(db)

    assert service.delete_pass(tenant.id, clipcard_pass.id) is True

    with pytest.raises(NotFoundException):
        service.get_pass(tenant.id, clipcard_pass.id)


def test_delete_pass_with_expired_subscription_retires_it(
    db, enforce_foreign_keys, tenant, student, clipcard_pass, single_pass, make_subscription
):
    make_subscription(student, clipcard_pass, is_active=False)
    service = PassCatalogService(db)

    assert service.delete_pass(tenant.id, clipcard_pass.id) is False

    retired = service.get_pass(tenant.id, clipcard_pass.id)
    assert retired.is_active is False
    assert [p.id for p in service.list_active_passes(tenant.id)] == [single_pass.id]


def test_delete_pass_with_checkout_history_retires_it(
    db, enforce_foreign_keys, tenant, student, clipcard_pass
):
    db.add(
        PaymentCheckout(
            provider="stripe",
            reference="cs_abandoned",
            tenant_id=tenant.id,
            user_id=student.id,
            pass_definition_id=clipcard_pass.id,
            amount_minor_units=clipcard_pass.price_minor_units,
            currency="nok",
            status=CheckoutStatus.PENDING.value,
        )
    )
    db.commit()
    service = PassCatalogService(db)

    assert service.delete_pass(tenant.id, clipcard_pass.id) is False
    assert service.get_pass(tenant.id, clipcard_pass.id).is_active is False


def test_upgrade_options_respect_price_step_and_kind(
    db, tenant, student, single_pass, clipcard_pass, unlimited_pass, make_subscription
):
    service = PassCatalogService(db)
    big_single = service.create_pass(
        tenant.id,
        _create(name="Private lesson", kind=PassKind.SINGLE, price_minor_units=400000),
    )
    subscription = make_subscription(student, clipcard_pass)

    options = service.upgrade_options(tenant.id, subscription)

    # 150000 paid, 5000 step: the unlimited pass at 90000 is too cheap and a
    # single-class pass is never an upgrade from a clipcard.
    assert big_single.id not in {p.id for p in options}
    assert options == []


def test_upgrade_options_from_single_include_dearer_passes(
    db, tenant, student, single_pass, clipcard_pass, unlimited_pass, make_subscription
):
    service = PassCatalogService(db)
    subscription = make_subscription(student, single_pass)

    options = service.upgrade_options(tenant.id, subscription)

    assert {p.id for p in options} == {clipcard_pass.id, unlimited_pass.id}


def test_upgrade_options_from_unlimited_only_offer_unlimited(
    db, tenant, student, unlimited_pass, make_subscription
):
    service = PassCatalogService(db)
    dearer_unlimited = service.create_pass(
        tenant.id,
        _create(name="Unlimited year", kind=PassKind.UNLIMITED, price_minor_units=900000),
    )
    service.create_pass(
        tenant.id,
        _create(name="Big clipcard", kind=PassKind.CLIPCARD, price_minor_units=500000),
    )
    subscription = make_subscription(student, unlimited_pass)

    options = service.upgrade_options(tenant.id, subscription)

    assert [p.id for p in options] == [dearer_unlimited.id]
