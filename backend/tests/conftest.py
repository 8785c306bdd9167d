"""
Pytest fixtures for the billing backend tests.

Provides an in-memory database, a per-test table wipe, the Flask test
client and an authenticated admin.
"""

import pytest
from autocare import create_app
from autocare.extensions import db
from autocare.models import Admin, Tire
from autocare.services.auth_service import hash_password


ADMIN_EMAIL = "owner@autocare.test"
ADMIN_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_NUMBER_PREFIX': 'GM',
        'TAX_RATES_BPS': {
            'item': {'cgst': 1400, 'sgst': 1400},
            'service': {'cgst': 0, 'sgst': 0},
        },
        'RESTOCK_ON_INVOICE_DELETE': False,
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
def admin_password_hash():
    """bcrypt is slow on purpose; hash once per run."""
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture(scope='function')
def admin(db_session, admin_password_hash):
    admin = Admin(email=ADMIN_EMAIL, password_hash=admin_password_hash, is_active=True)
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture(scope='function')
def auth_headers(client, admin):
    token = get_auth_token(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert token, "admin login failed"
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def tire(db_session):
    """A stocked tyre used by invoice tests."""
    tire = Tire(
        dimension="195/65R15",
        pattern="XYZ",
        material_code="MICHELIN",
        lisi="91V",
        billing_price_paise=450000,
        our_price_paise=400000,
        customer_price_paise=500000,
        stock=10,
    )
    db_session.add(tire)
    db_session.commit()
    return tire


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for an admin."""
    response = client.post('/api/admin/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def invoice_payload(**overrides) -> dict:
    """Minimal valid invoice body: one tyre line, cash."""
    payload = {
        "customer_name": "Ravi Kumar",
        "customer_phone": "9876543210",
        "car_model": "Swift",
        "car_number": "KA01AB1234",
        "usage_reading": 42000,
        "invoice_date": "2026-03-15T10:00:00Z",
        "items": [
            {
                "material_code": "MICHELIN",
                "dimension": "195/65R15",
                "pattern": "XYZ",
                "price_paise": 500000,
                "quantity": 2,
            }
        ],
        "services": [],
        "payment_method": "cash",
        "payment_details": {},
    }
    payload.update(overrides)
    return payload


def service_only_payload(rate_paise: int, **overrides) -> dict:
    """Services are tax exempt, so grand total == rate_paise."""
    payload = invoice_payload(
        items=[],
        services=[{"service_type": "Wheel alignment", "quantity": 1, "rate_paise": rate_paise}],
    )
    payload.update(overrides)
    return payload
