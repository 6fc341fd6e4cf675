"""
Pytest fixtures for ShopDesk backend tests.

Provides test database setup, user accounts, entity factories and test client.
"""

import pytest
from shopdesk import create_app
from shopdesk.extensions import db
from shopdesk.services import settings_service
from shopdesk.services.auth_service import hash_password
from shopdesk.services.clients_service import upsert_client
from shopdesk.services.products_service import upsert_product


ADMIN_USERNAME = "Admin"
ADMIN_PASSWORD = "Password123!"
OPERATOR_USERNAME = "Maria"
OPERATOR_PASSWORD = "Operator123!"
OPERATOR_ID = "op-maria"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
def password_hashes():
    """bcrypt is slow on purpose; hash the fixture passwords once."""
    return {
        "admin": hash_password(ADMIN_PASSWORD),
        "operator": hash_password(OPERATOR_PASSWORD),
    }


@pytest.fixture(scope='function')
def users(db_session, password_hashes):
    """Admin plus one active operator stored in the users settings document."""
    cfg = {
        "admin": {"username": ADMIN_USERNAME, "password_hash": password_hashes["admin"]},
        "operators": [
            {
                "id": OPERATOR_ID,
                "username": OPERATOR_USERNAME,
                "password_hash": password_hashes["operator"],
                "active": True,
            },
        ],
    }
    settings_service.save_users_config(cfg)
    return cfg


def get_auth_token(client, role: str, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'role': role,
        'username': username,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin", ADMIN_USERNAME, ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def operator_headers(client, users):
    return auth_headers(get_auth_token(client, "operator", OPERATOR_USERNAME, OPERATOR_PASSWORD))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(stock=10, sale_price_cents=...) -> Product."""
    def _make(**overrides):
        payload = {
            "name": "Smart Shirt",
            "color": "Blue",
            "stock": 10,
            "cost_cents": 6000,
            "sale_price_cents": 10000,
        }
        payload.update(overrides)
        return upsert_product(payload=payload)
    return _make


@pytest.fixture(scope='function')
def make_client(db_session):
    """Factory: make_client(name=...) -> Client."""
    def _make(**overrides):
        payload = {
            "name": "Maria Fernanda Lopez",
            "document_id": "7896543 LP",
            "phone": "+591 765-43210",
            "address": "Av. Busch #234, La Paz",
        }
        payload.update(overrides)
        return upsert_client(payload=payload)
    return _make
