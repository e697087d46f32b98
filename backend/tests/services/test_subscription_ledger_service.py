from datetime import datetime, timedelta, timezone

import pytest

from app.core.enums import DeactivationReason, ValidityType
from app.core.exceptions import (
    DuplicatePaymentException,
    InsufficientCreditException,
    NotFoundException,
)
from app.core.timezone_utils import ensure_utc
from app.services.subscription_ledger_service import (
    SubscriptionLedgerService,
    compute_end_at,
    is_usable,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def test_create_from_payment_snapshots_pass_terms(db, tenant, student, clipcard_pass):
    ledger = SubscriptionLedgerService(db)

    subscription = ledger.create_from_payment(tenant.id, student.id, clipcard_pass.id, "pay-1")

    assert subscription.remaining_credits == 10
    assert subscription.credit_limit == 10
    assert subscription.pass_name == clipcard_pass.name
    assert subscription.purchase_price_minor_units == clipcard_pass.price_minor_units
    assert subscription.is_active is True
    span = ensure_utc(subscription.end_at) - ensure_utc(subscription.start_at)
    assert span == timedelta(days=90)


def test_create_from_payment_single_pass_gets_one_credit(db, tenant, student, single_pass):
    ledger = SubscriptionLedgerService(db)

    subscription = ledger.create_from_payment(tenant.id, student.id, single_pass.id, "pay-single")

    assert subscription.remaining_credits == 1


def test_create_from_payment_unlimited_has_no_credits(db, tenant, student, unlimited_pass):
    ledger = SubscriptionLedgerService(db)

    subscription = ledger.create_from_payment(tenant.id, student.id, unlimited_pass.id, "pay-u")

    assert subscription.remaining_credits is None
    assert subscription.is_unlimited


def test_create_from_payment_twice_is_a_duplicate(db, tenant, student, clipcard_pass):
    ledger = SubscriptionLedgerService(db)
    first = ledger.create_from_payment(tenant.id, student.id, clipcard_pass.id, "pay-dup")

    with pytest.raises(DuplicatePaymentException) as exc:
        ledger.create_from_payment(tenant.id, student.id, clipcard_pass.id, "pay-dup")

    assert exc.value.details["subscription_id"] == first.id
    assert len(ledger.list_for_user(tenant.id, student.id)) == 1


def test_create_from_payment_for_user_of_other_tenant_is_not_found(
    db, tenant, outsider, clipcard_pass
):
    ledger = SubscriptionLedgerService(db)

    with pytest.raises(NotFoundException):
        ledger.create_from_payment(tenant.id, outsider.id, clipcard_pass.id, "pay-x")


def test_create_from_payment_with_pass_of_other_tenant_is_not_found(
    db, other_tenant, outsider, clipcard_pass
):
    ledger = SubscriptionLedgerService(db)

    with pytest.raises(NotFoundException):
        ledger.create_from_payment(other_tenant.id, outsider.id, clipcard_pass.id, "pay-y")


def test_compute_end_at_for_date_validity(clipcard_pass):
    expiry = datetime(2030, 6, 1, tzinfo=timezone.utc)
    clipcard_pass.validity_type = ValidityType.DATE.value
    clipcard_pass.expiry_date = expiry

    assert compute_end_at(clipcard_pass, _now()) == expiry


def test_consume_last_credit_deactivates(db, student, single_pass, make_subscription):
    subscription = make_subscription(student, single_pass)
    ledger = SubscriptionLedgerService(db)

    updated = ledger.consume_credit(subscription.id)
    db.commit()

    assert updated.remaining_credits == 0
    assert updated.is_active is False
    assert updated.deactivation_reason == DeactivationReason.CREDITS_EXHAUSTED.value
    assert not is_usable(updated)


def test_consume_credit_on_empty_subscription_raises(db, student, clipcard_pass, make_subscription):
    subscription = make_subscription(student, clipcard_pass, credits=0, is_active=False)
    ledger = SubscriptionLedgerService(db)

    with pytest.raises(InsufficientCreditException):
        ledger.consume_credit(subscription.id)


def test_consume_credit_on_expired_subscription_raises(
    db, student, clipcard_pass, make_subscription
):
    subscription = make_subscription(
        student,
        clipcard_pass,
        start_at=_now() - timedelta(days=100),
        end_at=_now() - timedelta(days=1),
    )
    ledger = SubscriptionLedgerService(db)

    with pytest.raises(InsufficientCreditException):
        ledger.consume_credit(subscription.id)


def test_consume_credit_leaves_unlimited_untouched(db, student, unlimited_pass, make_subscription):
    subscription = make_subscription(student, unlimited_pass)
    ledger = SubscriptionLedgerService(db)

    updated = ledger.consume_credit(subscription.id)

    assert updated.remaining_credits is None
    assert updated.is_active is True


def test_restore_credit_reactivates_exhausted_subscription(
    db, student, single_pass, make_subscription
):
    subscription = make_subscription(student, single_pass)
    ledger = SubscriptionLedgerService(db)
    ledger.consume_credit(subscription.id)

    restored = ledger.restore_credit(subscription.id)
    db.commit()

    assert restored.remaining_credits == 1
    assert restored.is_active is True
    assert restored.deactivation_reason is None


def test_restore_credit_never_exceeds_limit(db, student, clipcard_pass, make_subscription):
    subscription = make_subscription(student, clipcard_pass)
    ledger = SubscriptionLedgerService(db)

    restored = ledger.restore_credit(subscription.id)

    assert restored.remaining_credits == 10


def test_restore_credit_does_not_revive_admin_deactivation(
    db, student, clipcard_pass, make_subscription
):
    subscription = make_subscription(
        student,
        clipcard_pass,
        credits=3,
        is_active=False,
        deactivation_reason=DeactivationReason.ADMIN.value,
    )
    ledger = SubscriptionLedgerService(db)

    restored = ledger.restore_credit(subscription.id)

    assert restored.remaining_credits == 4
    assert restored.is_active is False


def test_list_for_user_expires_lapsed_subscriptions(
    db, tenant, student, clipcard_pass, make_subscription
):
    lapsed = make_subscription(
        student,
        clipcard_pass,
        start_at=_now() - timedelta(days=100),
        end_at=_now() - timedelta(days=10),
    )
    current = make_subscription(student, clipcard_pass)
    ledger = SubscriptionLedgerService(db)

    rows = {row.id: row for row in ledger.list_for_user(tenant.id, student.id)}

    assert rows[lapsed.id].is_active is False
    assert rows[lapsed.id].deactivation_reason == DeactivationReason.EXPIRED.value
    assert rows[current.id].is_active is True


def test_select_for_booking_prefers_unlimited(
    db, tenant, student, clipcard_pass, unlimited_pass, make_subscription
):
    make_subscription(student, clipcard_pass, end_at=_now() + timedelta(days=2))
    unlimited = make_subscription(student, unlimited_pass)
    ledger = SubscriptionLedgerService(db)

    assert ledger.select_for_booking(tenant.id, student.id).id == unlimited.id


def test_select_for_booking_picks_soonest_expiry(
    db, tenant, student, clipcard_pass, make_subscription
):
    make_subscription(student, clipcard_pass, end_at=_now() + timedelta(days=40))
    soon = make_subscription(student, clipcard_pass, end_at=_now() + timedelta(days=5))
    make_subscription(student, clipcard_pass, credits=0, is_active=False)
    ledger = SubscriptionLedgerService(db)

    assert ledger.select_for_booking(tenant.id, student.id).id == soon.id


def test_select_for_booking_without_usable_subscription(db, tenant, student):
    assert SubscriptionLedgerService(db).select_for_booking(tenant.id, student.id) is None
