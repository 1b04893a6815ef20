"""
Pytest fixtures for buying-group backend tests.

Provides the application on in-memory SQLite, a per-test clean database,
seller/worker/admin profiles with bearer tokens, warehouses and deals.
"""

import pytest

from buygroup import create_app
from buygroup.extensions import db
from buygroup.models import Deal
from buygroup.models.accounts import ROLE_ADMIN, ROLE_SELLER, ROLE_WORKER
from buygroup.models.deals import DEAL_ACTIVE
from buygroup.services import deal_service, profile_service, session_service, warehouse_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEAL_WEBHOOK_URL': None,
        'DEAL_WEBHOOK_SECRET': None,
        'BOT_API_KEY': 'test-bot-key',
        'WEBSITE_URL': 'https://deals.example.com',
        'BUYING_GROUP_NAME': 'Test Group',
        'BUYING_GROUP_ID': 'test-group',
        'MEMBERSHIP_LOOKUP': None,
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


def _profile(email, role, **kwargs):
    return profile_service.create_profile(
        email=email,
        first_name=email.split("@")[0].title(),
        last_name="Tester",
        role=role,
        **kwargs,
    )


@pytest.fixture(scope='function')
def seller(db_session):
    return _profile("seller@example.com", ROLE_SELLER)


@pytest.fixture(scope='function')
def other_seller(db_session):
    return _profile("other@example.com", ROLE_SELLER)


@pytest.fixture(scope='function')
def vip_seller(db_session):
    return _profile("vip@example.com", ROLE_SELLER, is_exclusive_member=True, discord_id="1234")


@pytest.fixture(scope='function')
def worker(db_session):
    return _profile("worker@example.com", ROLE_WORKER)


@pytest.fixture(scope='function')
def admin(db_session):
    return _profile("admin@example.com", ROLE_ADMIN)


def _headers(profile):
    _, token = session_service.issue_token(profile.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def seller_headers(seller):
    return _headers(seller)


@pytest.fixture(scope='function')
def other_seller_headers(other_seller):
    return _headers(other_seller)


@pytest.fixture(scope='function')
def worker_headers(worker):
    return _headers(worker)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture(scope='function')
def warehouses(db_session):
    """MA/NJ/CT/NY drop-off only, DE shipping only."""
    return {w.code: w for w in warehouse_service.seed_default_warehouses()}


@pytest.fixture(scope='function')
def make_deal(db_session, admin):
    """Factory for deals created through the service (so numbering and price_type apply)."""
    def _make(**overrides) -> Deal:
        payload = {
            "title": "Nintendo Switch OLED",
            "retail_price_cents": 34999,
            "payout_cents": 36000,
            "limit_per_vendor": 10,
            "status": DEAL_ACTIVE,
        }
        payload.update(overrides)
        return deal_service.create_deal(actor=admin, payload=payload)

    return _make


@pytest.fixture(scope='function')
def active_deal(make_deal):
    return make_deal()
