# backend/tests/conftest.py
"""
Pytest configuration for the pass and booking ledger.

Tests run against an in-memory SQLite database that is created fresh for
every test. The FastAPI app shares the test session through a dependency
override, so route tests and direct service calls see the same rows.
"""

import os
import sys

# Set testing mode BEFORE any app imports
os.environ["is_testing"] = "true"
os.environ.setdefault("INTERNAL_WEBHOOK_SECRET", "test-webhook-secret")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies.database import get_db
from app.auth import create_access_token
from app.core.enums import PassKind, RoleName, ValidityType
from app.database import Base
from app.main import app
from app import models  # noqa: F401
from app.models.class_instance import ClassInstance
from app.models.class_template import ClassTemplate
from app.models.pass_definition import PassDefinition
from app.models.subscription import Subscription
from app.models.tenant import Tenant
from app.models.user import User

TEST_WEBHOOK_SECRET = os.environ["INTERNAL_WEBHOOK_SECRET"]

engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def db() -> Session:
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def enforce_foreign_keys(db: Session):
    """Turn on SQLite foreign key checks for one test, as Postgres always has them."""
    db.commit()
    db.execute(text("PRAGMA foreign_keys=ON"))
    yield
    db.rollback()
    db.execute(text("PRAGMA foreign_keys=OFF"))
    db.commit()


@pytest.fixture
def client(db: Session) -> TestClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ----------------------------------------------------------------------------
# Tenants and users
# ----------------------------------------------------------------------------


@pytest.fixture
def tenant(db: Session) -> Tenant:
    row = Tenant(slug="salsa-oslo", school_name="Salsa Oslo", timezone="Europe/Oslo")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def other_tenant(db: Session) -> Tenant:
    row = Tenant(slug="tango-bergen", school_name="Tango Bergen", timezone="Europe/Oslo")
    db.add(row)
    db.commit()
    return row


def _make_user(db: Session, tenant: Tenant, email: str, role: str, **extra) -> User:
    user = User(tenant_id=tenant.id, email=email, name=email.split("@")[0], role=role, **extra)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def student(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "student@example.com", RoleName.STUDENT.value)


@pytest.fixture
def other_student(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "second.student@example.com", RoleName.STUDENT.value)


@pytest.fixture
def admin_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "admin@example.com", RoleName.ADMIN.value)


@pytest.fixture
def outsider(db: Session, other_tenant: Tenant) -> User:
    return _make_user(db, other_tenant, "outsider@example.com", RoleName.STUDENT.value)


def auth_headers_for(user_id: str, tenant: Tenant, roles: Optional[list] = None) -> Dict[str, str]:
    claims = {"sub": user_id}
    if roles:
        claims["roles"] = roles
    return {
        "Authorization": f"Bearer {create_access_token(claims)}",
        "X-Tenant-Slug": tenant.slug,
    }


@pytest.fixture
def headers_for() -> Callable[..., Dict[str, str]]:
    return auth_headers_for


@pytest.fixture
def student_headers(student: User, tenant: Tenant) -> Dict[str, str]:
    return auth_headers_for(student.id, tenant)


@pytest.fixture
def admin_headers(admin_user: User, tenant: Tenant) -> Dict[str, str]:
    return auth_headers_for(admin_user.id, tenant)


# ----------------------------------------------------------------------------
# Passes and subscriptions
# ----------------------------------------------------------------------------


def _make_pass(db: Session, tenant: Tenant, **overrides) -> PassDefinition:
    values = dict(
        tenant_id=tenant.id,
        name="10-class clipcard",
        kind=PassKind.CLIPCARD.value,
        price_minor_units=150000,
        validity_type=ValidityType.DAYS.value,
        validity_days=90,
        class_credit_limit=10,
        is_active=True,
        version=1,
    )
    values.update(overrides)
    pass_def = PassDefinition(**values)
    db.add(pass_def)
    db.commit()
    return pass_def


@pytest.fixture
def clipcard_pass(db: Session, tenant: Tenant) -> PassDefinition:
    return _make_pass(db, tenant)


@pytest.fixture
def single_pass(db: Session, tenant: Tenant) -> PassDefinition:
    return _make_pass(
        db,
        tenant,
        name="Drop-in",
        kind=PassKind.SINGLE.value,
        price_minor_units=25000,
        validity_days=30,
        class_credit_limit=1,
    )


@pytest.fixture
def unlimited_pass(db: Session, tenant: Tenant) -> PassDefinition:
    return _make_pass(
        db,
        tenant,
        name="Unlimited month",
        kind=PassKind.UNLIMITED.value,
        price_minor_units=90000,
        validity_days=30,
        class_credit_limit=None,
    )


@pytest.fixture
def make_subscription(db: Session) -> Callable[..., Subscription]:
    counter = {"n": 0}

    def _make(user: User, pass_def: PassDefinition, **overrides) -> Subscription:
        counter["n"] += 1
        now = utcnow()
        credits = overrides.pop("credits", pass_def.class_credit_limit)
        if pass_def.kind == PassKind.UNLIMITED.value:
            credits = None
        values = dict(
            tenant_id=pass_def.tenant_id,
            user_id=user.id,
            pass_definition_id=pass_def.id,
            pass_name=pass_def.name,
            pass_kind=pass_def.kind,
            pass_version=pass_def.version,
            purchase_price_minor_units=pass_def.price_minor_units,
            credit_limit=pass_def.class_credit_limit if credits is not None else None,
            remaining_credits=credits,
            start_at=now - timedelta(days=1),
            end_at=now + timedelta(days=pass_def.validity_days or 30),
            is_active=True,
            payment_provider="internal",
            external_payment_reference=f"pay-fixture-{counter['n']}",
        )
        values.update(overrides)
        subscription = Subscription(**values)
        db.add(subscription)
        db.commit()
        return subscription

    return _make


# ----------------------------------------------------------------------------
# Classes
# ----------------------------------------------------------------------------


@pytest.fixture
def class_template(db: Session, tenant: Tenant) -> ClassTemplate:
    template = ClassTemplate(
        tenant_id=tenant.id,
        title="Salsa Level 1",
        capacity=10,
        duration_minutes=60,
        timezone="Europe/Oslo",
        start_date=date.today(),
        end_date=date.today() + timedelta(days=60),
        is_active=True,
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture
def make_instance(db: Session, class_template: ClassTemplate) -> Callable[..., ClassInstance]:
    def _make(
        starts_in: timedelta = timedelta(days=2),
        capacity: Optional[int] = None,
        template: Optional[ClassTemplate] = None,
        **overrides,
    ) -> ClassInstance:
        owner = template or class_template
        values = dict(
            tenant_id=owner.tenant_id,
            template_id=owner.id,
            starts_at=(utcnow() + starts_in).replace(microsecond=0),
            duration_minutes=owner.duration_minutes,
            capacity=capacity if capacity is not None else owner.capacity,
            booked_count=0,
            is_cancelled=False,
        )
        values.update(overrides)
        instance = ClassInstance(**values)
        db.add(instance)
        db.commit()
        return instance

    return _make


@pytest.fixture
def instance(make_instance) -> ClassInstance:
    return make_instance()


@pytest.fixture
def evening() -> time:
    return time(18, 30)
