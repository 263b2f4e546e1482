"""
Pytest fixtures for the realty CRM backend tests.

Every test gets a fresh in-memory database, an admin, two salespersons and
helpers to build inventory and investors through the services.
"""

import pytest

from realty_crm import create_app
from realty_crm.extensions import db
from realty_crm.models.auth import ROLE_ADMIN, ROLE_SALESPERSON
from realty_crm.services import funding_service, inventory_service
from realty_crm.services.auth_service import create_user
from realty_crm.services.scope import Scope


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin(app):
    return create_user(name="Owner", email="owner@example.com", password=PASSWORD, role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def salesperson(app):
    return create_user(name="Sara", email="sara@example.com", password=PASSWORD, role=ROLE_SALESPERSON)


@pytest.fixture(scope='function')
def other_salesperson(app):
    return create_user(name="Omar", email="omar@example.com", password=PASSWORD, role=ROLE_SALESPERSON)


@pytest.fixture(scope='function')
def admin_scope(admin):
    return Scope.for_user(admin)


@pytest.fixture(scope='function')
def sp_scope(salesperson):
    return Scope.for_user(salesperson)


@pytest.fixture(scope='function')
def other_scope(other_salesperson):
    return Scope.for_user(other_salesperson)


@pytest.fixture(scope='function')
def make_unit(admin):
    """Factory: create an inventory unit with plots through the service."""
    def _make(quantity=3, price_cents=100_000, plot_numbers=None, category="plot", address="Block A, Phase 1"):
        return inventory_service.create_inventory_unit(
            category=category,
            address=address,
            price_cents=price_cents,
            quantity=quantity,
            plot_numbers=plot_numbers,
            actor_user_id=admin.id,
        )
    return _make


@pytest.fixture(scope='function')
def make_investor():
    """Factory: create an investor owned by `owner`."""
    def _make(owner, total_invested_cents, name="Investor"):
        return funding_service.create_investor(
            owner_id=owner.id,
            name=name,
            total_invested_cents=total_invested_cents,
        )
    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))


@pytest.fixture(scope='function')
def sp_headers(client, salesperson):
    return auth_headers(get_auth_token(client, salesperson.email))


@pytest.fixture(scope='function')
def other_headers(client, other_salesperson):
    return auth_headers(get_auth_token(client, other_salesperson.email))
