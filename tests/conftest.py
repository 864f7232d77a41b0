"""Shared fixtures for all tests.

Uses a throwaway SQLite file so tests are fast and isolated.
The database is recreated for every test function.
"""

import os

# Configure the app before any sgcheckout imports
os.environ["DATABASE_URL"] = "sqlite:///./test_checkout.db"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["STRIPE_PUBLISHABLE_KEY"] = ""
os.environ["PAYPAL_CLIENT_ID"] = "paypal-client"
os.environ["PAYPAL_CLIENT_SECRET"] = "paypal-secret"
os.environ["RESEND_API_KEY"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BASE_URL"] = "http://testserver"
os.environ["CHECKOUT_API_BASE_URL"] = "http://testserver"
os.environ["CHECKOUT_SESSION_FILE"] = ""
os.environ["FREE_CLAIM_REDIRECT_DELAY"] = "0.01"
os.environ["EMAIL_REQUIRED_MODAL_DELAY"] = "0.01"
os.environ["ELEMENT_READY_GRACE_DELAY"] = "0.01"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sgcheckout.database import Base, get_db
from sgcheckout.main import app
from sgcheckout.models import Event, Ticket, TicketStatus, User
from sgcheckout.services.auth import hash_password

TEST_DATABASE_URL = "sqlite:///./test_checkout.db"
TEST_PASSWORD = "correct-horse"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a database session for test helpers."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def override_db(db):
    def _override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_db):
    """TestClient that uses the test database."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ============== Factory helpers ==============

@pytest.fixture
def create_user(db):
    """Factory to create a user directly in the database."""

    _counter = [0]

    def _create(**overrides):
        _counter[0] += 1
        data = {
            "username": f"user{_counter[0]}",
            "email": f"user{_counter[0]}@example.com",
            "display_name": f"Test User {_counter[0]}",
            "password_hash": hash_password(TEST_PASSWORD),
        }
        data.update(overrides)
        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _create


@pytest.fixture
def login(client):
    """Log a user in and return their bearer token."""

    def _login(user):
        r = client.post("/api/auth/login", json={"username": user.username, "password": TEST_PASSWORD})
        assert r.status_code == 200, r.text
        # Tests authenticate explicitly through headers
        client.cookies.clear()
        return r.json()["token"]

    return _login


@pytest.fixture
def auth_headers(create_user, login):
    """Factory returning Authorization headers for a fresh (or given) user."""

    def _headers(user=None):
        user = user or create_user()
        return {"Authorization": f"Bearer {login(user)}"}

    return _headers


@pytest.fixture
def create_event(db):
    def _create(**overrides):
        data = {"title": "Carnival", "event_date": "2026-12-31", "venue_name": "Test Arena"}
        data.update(overrides)
        event = Event(**data)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _create


@pytest.fixture
def create_ticket(db, create_event):
    """Factory to create a ticket type (auto-creates event)."""

    def _create(event=None, **overrides):
        event = event or create_event()
        data = {
            "event_id": event.id,
            "name": "VIP",
            "price_cents": 2999,
            "currency": "usd",
            "status": TicketStatus.AVAILABLE,
            "remaining_quantity": 100,
        }
        data.update(overrides)
        ticket = Ticket(**data)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _create


@pytest.fixture
def user_password():
    """Password every factory-made user logs in with."""
    return TEST_PASSWORD
