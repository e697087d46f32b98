import pytest

from app.core.enums import CheckoutStatus, PaymentOutcome
from app.core.exceptions import NotFoundException, ValidationException
from app.models.payment_checkout import PaymentCheckout
from app.schemas.checkout import CheckoutCreate
from app.services.checkout_service import CheckoutService
from app.services.payment_reconciliation_service import PaymentReconciliationService
from app.services.payments.base import CheckoutRedirect, PaymentEvent, PaymentProvider
from app.services.webhook_ledger_service import WebhookLedgerService


class FakeProvider(PaymentProvider):
    name = "stripe"

    def __init__(self):
        self.requests = []

    def create_checkout(self, request):
        self.requests.append(request)
        return CheckoutRedirect(
            reference=f"cs_{len(self.requests)}",
            redirect_url=f"https://pay.example/{request.order_id}",
        )

    def parse_event(self, body, headers):
        raise NotImplementedError


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def service(db, provider):
    return CheckoutService(db, provider_factory=lambda name: provider)


def test_start_checkout_records_pending_checkout(db, tenant, student, clipcard_pass, service, provider):
    checkout, redirect_url = service.start_checkout(
        tenant.id, student.id, "stripe", CheckoutCreate(pass_id=clipcard_pass.id)
    )

    sent = provider.requests[0]
    assert sent.amount_minor_units == clipcard_pass.price_minor_units
    assert sent.order_id.startswith("pass-")
    assert sent.success_url.endswith("/payment/success")
    assert redirect_url == f"https://pay.example/{sent.order_id}"
    stored = db.query(PaymentCheckout).one()
    assert stored.id == checkout.id
    assert stored.reference == "cs_1"
    assert stored.status == CheckoutStatus.PENDING.value
    assert stored.user_id == student.id


def test_start_checkout_keeps_caller_urls(db, tenant, student, clipcard_pass, service, provider):
    service.start_checkout(
        tenant.id,
        student.id,
        "stripe",
        CheckoutCreate(
            pass_id=clipcard_pass.id,
            success_url="https://school.example/thanks",
            cancel_url="https://school.example/oops",
        ),
    )

    assert provider.requests[0].success_url == "https://school.example/thanks"
    assert provider.requests[0].cancel_url == "https://school.example/oops"


def test_start_checkout_for_retired_pass(db, tenant, student, clipcard_pass, service):
    clipcard_pass.is_active = False
    db.commit()

    with pytest.raises(ValidationException):
        service.start_checkout(tenant.id, student.id, "stripe", CheckoutCreate(pass_id=clipcard_pass.id))


def test_start_checkout_for_pass_of_other_tenant(db, other_tenant, outsider, clipcard_pass, service):
    with pytest.raises(NotFoundException):
        service.start_checkout(
            other_tenant.id, outsider.id, "stripe", CheckoutCreate(pass_id=clipcard_pass.id)
        )


def test_payment_status_progression(db, tenant, student, clipcard_pass, service):
    service.start_checkout(tenant.id, student.id, "stripe", CheckoutCreate(pass_id=clipcard_pass.id))

    assert service.payment_status(tenant.id, student.id, "cs_1") == ("pending", None, None)

    PaymentReconciliationService(db).handle(
        PaymentEvent(
            provider="stripe",
            event_id="evt_1",
            event_type="checkout.session.completed",
            outcome=PaymentOutcome.COMPLETED,
            reference="cs_1",
        )
    )

    status, subscription, error = service.payment_status(tenant.id, student.id, "cs_1")
    assert status == "found"
    assert subscription.user_id == student.id
    assert error is None


def test_payment_status_reports_processing_and_errors(db, tenant, student, service):
    ledger = WebhookLedgerService(db)
    row = ledger.log_received(
        source="stripe",
        event_type="checkout.session.completed",
        event_id="evt_9",
        payload={},
        payment_reference="cs_9",
    )

    assert service.payment_status(tenant.id, student.id, "cs_9")[0] == "processing"

    ledger.mark_failed(row, error="Pass not found")

    assert service.payment_status(tenant.id, student.id, "cs_9") == ("error", None, "Pass not found")


def test_payment_status_of_someone_elses_payment(db, tenant, student, other_student, clipcard_pass, service):
    service.start_checkout(tenant.id, student.id, "stripe", CheckoutCreate(pass_id=clipcard_pass.id))
    PaymentReconciliationService(db).handle(
        PaymentEvent(
            provider="stripe",
            event_id="evt_1",
            event_type="checkout.session.completed",
            outcome=PaymentOutcome.COMPLETED,
            reference="cs_1",
        )
    )

    with pytest.raises(NotFoundException):
        service.payment_status(tenant.id, other_student.id, "cs_1")


def test_sanitize_headers_redacts_secrets():
    cleaned = WebhookLedgerService._sanitize_headers(
        {"Stripe-Signature": "t=1,v1=abc", "Authorization": "Bearer x", "User-Agent": "Stripe/1.0"}
    )

    assert cleaned == {
        "Stripe-Signature": "[redacted]",
        "Authorization": "[redacted]",
        "User-Agent": "Stripe/1.0",
    }
