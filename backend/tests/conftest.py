"""
Pytest fixtures for back-office tests.

Provides the in-memory application, per-test database reset, two tenants
with default roles, one user per role, and catalog/customer fixtures.
"""

import pytest

from backoffice import create_app
from backoffice.config import TestConfig
from backoffice.extensions import db
from backoffice.models import Customer, Organization, Product, ProductVariant
from backoffice.services import permission_service
from backoffice.services.auth_service import assign_role, create_default_roles, create_user
from backoffice.services.session_service import create_session

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test, schema kept."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    org = Organization(name="Org A - Sakura Imports", code="SAKURA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    org = Organization(name="Org B - Highland Trading", code="HIGHLAND", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def setup_roles(db_session, org_a, org_b):
    """Default roles and permissions for both tenants."""
    permission_service.initialize_permissions()
    for org in (org_a, org_b):
        create_default_roles(org.id)
        permission_service.assign_default_role_permissions(org.id)


def _make_user(org, username, role):
    user = create_user(
        username=username,
        email=f"{username}@{org.code.lower()}.test",
        password=PASSWORD,
        org_id=org.id,
        rounds=4,
    )
    assign_role(user.id, role)
    return user


@pytest.fixture(scope='function')
def admin_a(setup_roles, org_a):
    return _make_user(org_a, "admin_a", "admin")


@pytest.fixture(scope='function')
def employee_a(setup_roles, org_a):
    return _make_user(org_a, "employee_a", "employee")


@pytest.fixture(scope='function')
def investor_a(setup_roles, org_a):
    return _make_user(org_a, "investor_a", "investor")


@pytest.fixture(scope='function')
def admin_b(setup_roles, org_b):
    return _make_user(org_b, "admin_b", "admin")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _, token = create_session(user_id=user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_a):
    return headers_for(admin_a)


@pytest.fixture(scope='function')
def employee_headers(employee_a):
    return headers_for(employee_a)


@pytest.fixture(scope='function')
def investor_headers(investor_a):
    return headers_for(investor_a)


@pytest.fixture(scope='function')
def admin_b_headers(admin_b):
    return headers_for(admin_b)


@pytest.fixture(scope='function')
def product_a(db_session, org_a):
    product = Product(
        org_id=org_a.id,
        product_code="YAM-12",
        name="Yamazaki 12 Single Malt Whisky",
        category="whisky",
        alcohol_percentage=43.0,
        volume_ml=700,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_a(db_session, product_a):
    """Investor price 10.00, actual list price 12.00, 10 in stock."""
    variant = ProductVariant(
        org_id=product_a.org_id,
        product_id=product_a.id,
        variant_code="YAM-12-700",
        description="700ml bottle",
        cost_price_cents=800,
        investor_price_cents=1000,
        actual_price_cents=1200,
        available_stock=10,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def variant_a_gift(db_session, product_a):
    """Investor price 5.00, 4 in stock."""
    variant = ProductVariant(
        org_id=product_a.org_id,
        product_id=product_a.id,
        variant_code="YAM-12-GIFT",
        description="Gift box",
        cost_price_cents=400,
        investor_price_cents=500,
        actual_price_cents=500,
        available_stock=4,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def customer_a(db_session, org_a):
    customer = Customer(org_id=org_a.id, name="Bar Kurosawa", tier="VIP", contact_person="Kurosawa")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    product = Product(org_id=org_b.id, product_code="GLEN-18", name="Glen 18 Whisky", category="whisky")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_b(db_session, product_b):
    variant = ProductVariant(
        org_id=product_b.org_id,
        product_id=product_b.id,
        variant_code="GLEN-18-700",
        investor_price_cents=3000,
        actual_price_cents=3600,
        available_stock=5,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def customer_b(db_session, org_b):
    customer = Customer(org_id=org_b.id, name="Highland Pub", tier="REGULAR")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_user(setup_roles):
    """Factory for extra users: make_user(org, username, role)."""
    return _make_user


@pytest.fixture(scope='function')
def login_headers():
    """Factory returning Authorization headers for a fresh session of a user."""
    return headers_for
