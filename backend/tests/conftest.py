"""
Pytest fixtures for BizzFlow backend tests.

Provides test database setup, users, vendor / purchase order factories,
and an authenticated test client.
"""

from datetime import date, timedelta

import pytest
from bizzflow import create_app
from bizzflow.extensions import db
from bizzflow.models import User
from bizzflow.services.auth_service import hash_password
from bizzflow.services import purchase_order_service, vendor_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def user(db_session, password_hash):
    """Admin user acting in most tests."""
    user = User(
        name="Asha Admin",
        email="admin@bizzflow.test",
        password_hash=password_hash,
        role="admin",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_user(db_session, password_hash):
    user = User(
        name="Manoj Manager",
        email="manager@bizzflow.test",
        password_hash=password_hash,
        role="manager",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def auth_headers(client, user):
    """Authorization headers for the admin user, obtained through login."""
    response = client.post('/api/auth/login', json={
        'email': user.email,
        'password': TEST_PASSWORD,
    })
    assert response.status_code == 200, response.get_json()
    return {'Authorization': f"Bearer {response.get_json()['token']}"}


def _vendor_payload(index: int, **overrides) -> dict:
    payload = {
        "name": f"Vendor {index}",
        "email": f"vendor{index}@supplies.test",
        "phone": "+977-1-5550000",
        "address": "Kathmandu",
        "registration_type": "pan",
        "pan_number": f"PAN{index:06d}",
        "category": "supplier",
        "bank_details": {
            "account_name": f"Vendor {index} Pvt Ltd",
            "account_number": f"0010{index:08d}",
            "bank_name": "Everest Bank",
            "branch": "New Road",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def vendor_payload():
    """Factory for valid vendor request bodies; each call uses fresh identifiers."""
    counter = {"n": 0}

    def _make(**overrides) -> dict:
        counter["n"] += 1
        return _vendor_payload(counter["n"], **overrides)

    return _make


@pytest.fixture(scope='function')
def make_vendor(db_session, user, vendor_payload):
    def _make(**overrides):
        return vendor_service.create_vendor(vendor_payload(**overrides), actor=user)
    return _make


@pytest.fixture(scope='function')
def vendor(make_vendor):
    return make_vendor()


@pytest.fixture(scope='function')
def po_payload(vendor):
    """Factory for valid purchase order request bodies."""
    def _make(**overrides) -> dict:
        payload = {
            "vendor_id": vendor.id,
            "items": [{"description": "Widget", "quantity": 10, "unit_price_cents": 5}],
            "due_date": (date.today() + timedelta(days=7)).isoformat(),
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture(scope='function')
def make_po(db_session, user, po_payload):
    def _make(**overrides):
        return purchase_order_service.create_purchase_order(po_payload(**overrides), actor=user)
    return _make


@pytest.fixture(scope='function')
def approved_po(make_po, user):
    """Purchase order with total 50 in approved status."""
    po = make_po()
    purchase_order_service.submit_purchase_order(po.id, actor=user)
    return purchase_order_service.set_status(po.id, "approved", "ok", actor=user)
