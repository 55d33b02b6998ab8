"""
Pytest fixtures for pharmacy backend tests.

Provides an in-memory database, per-test cleanup, item/rule/order factories,
and bearer-token helpers for route tests.
"""

from datetime import date
from decimal import Decimal

import pytest
from emr_pharmacy import create_app
from emr_pharmacy.extensions import db
from emr_pharmacy.models import InventoryItem, PayerPricingRule, PharmacyOrder
from emr_pharmacy.services.auth_service import issue_token


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test-secret',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_item(session, **overrides) -> InventoryItem:
    """Insert an item directly (no opening ledger row)."""
    values = {
        "medication_name": "Paracetamol 500mg",
        "generic_name": "Acetaminophen",
        "category": "Analgesic",
        "unit": "tablet",
        "quantity_on_hand": 100,
        "reorder_level": 10,
        "unit_cost": Decimal("0.50"),
        "selling_price": Decimal("10.00"),
        "expiry_date": date(2030, 12, 31),
    }
    values.update(overrides)
    item = InventoryItem(**values)
    session.add(item)
    session.commit()
    return item


def make_rule(session, payer_type, *, payer_id=None, category=None, markup="0", discount="0", is_active=True):
    rule = PayerPricingRule(
        payer_type=payer_type,
        payer_id=payer_id,
        category=category,
        markup_percentage=Decimal(markup),
        discount_percentage=Decimal(discount),
        is_active=is_active,
    )
    session.add(rule)
    session.commit()
    return rule


def make_order(session, *, patient_id=7, status="ordered", medication_name="Paracetamol 500mg"):
    order = PharmacyOrder(
        patient_id=patient_id,
        medication_name=medication_name,
        quantity="10",
        status=status,
    )
    session.add(order)
    session.commit()
    return order


@pytest.fixture(scope='function')
def item(db_session):
    return make_item(db_session)


def make_token(app, role: str, user_id: int = 1) -> str:
    return issue_token(app.config['SECRET_KEY'], user_id=user_id, role=role)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(app):
    return auth_headers(make_token(app, 'admin', user_id=1))


@pytest.fixture(scope='function')
def pharmacist_headers(app):
    return auth_headers(make_token(app, 'pharmacist', user_id=2))


@pytest.fixture(scope='function')
def tech_headers(app):
    return auth_headers(make_token(app, 'pharmacy_tech', user_id=3))


@pytest.fixture(scope='function')
def nurse_headers(app):
    return auth_headers(make_token(app, 'nurse', user_id=4))


@pytest.fixture(scope='function')
def receptionist_headers(app):
    return auth_headers(make_token(app, 'receptionist', user_id=5))
