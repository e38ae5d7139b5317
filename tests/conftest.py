"""Shared test fixtures for the Leadbook test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: an owner, a second agent and one buyer owned by the owner
- buyer_payload: factory for a valid create payload
- login: logs a test client in as a given user
"""

import pytest
from flask import g
from flask.testing import FlaskClient

from leadbook import create_app
from leadbook.extensions import db as _db
from leadbook.models.user import User
from leadbook.services import buyer_service

OWNER_PASSWORD = "owner-pass-123"
OTHER_PASSWORD = "other-pass-123"


class IsolatedClient(FlaskClient):
    """Test client whose requests resolve the user from their own cookie.

    Requests reuse the test's app context, so Flask-Login's cached user in
    `g` would otherwise leak from one client to the next.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    app.test_client_class = IsolatedClient
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def _valid_payload(**overrides):
    payload = {
        "fullName": "Jane Doe",
        "phone": "9876543210",
        "city": "MOHALI",
        "propertyType": "APARTMENT",
        "bhk": "TWO",
        "purpose": "BUY",
        "timeline": "ZERO_TO_THREE_MONTHS",
        "source": "WEBSITE",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def buyer_payload():
    """Factory: buyer_payload(city="CHANDIGARH") -> valid create payload."""
    return _valid_payload


@pytest.fixture
def seed_data(db_session):
    """Seed two agents and one buyer owned by the first.

    Returns a dict with the objects and their plain ids.
    """
    owner = User(email="owner@leadbook.test", name="Owner Agent")
    owner.set_password(OWNER_PASSWORD)
    other = User(email="other@leadbook.test", name="Other Agent")
    other.set_password(OTHER_PASSWORD)
    db_session.add_all([owner, other])
    db_session.commit()

    buyer = buyer_service.create_buyer(_valid_payload(), owner.id)

    return {
        "owner": owner,
        "owner_id": owner.id,
        "owner_email": owner.email,
        "owner_password": OWNER_PASSWORD,
        "other": other,
        "other_id": other.id,
        "other_email": other.email,
        "other_password": OTHER_PASSWORD,
        "buyer": buyer,
        "buyer_id": buyer.id,
    }


@pytest.fixture
def login():
    """login(client, email, password) -> response of POST /auth/login."""

    def _login(client, email, password):
        return client.post("/auth/login", json={"email": email, "password": password})

    return _login


@pytest.fixture
def owner_client(app, seed_data, login):
    """Test client logged in as the owner of the seeded buyer."""
    c = app.test_client()
    login(c, seed_data["owner_email"], OWNER_PASSWORD)
    return c


@pytest.fixture
def other_client(app, seed_data, login):
    """Test client logged in as an agent who owns nothing."""
    c = app.test_client()
    login(c, seed_data["other_email"], OTHER_PASSWORD)
    return c
