"""Shared fixtures: in-memory database, API client and seed data."""

import os

# Configure before the package builds its settings and engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["XENDIT_API_KEY"] = "xnd_development_test"
os.environ["XENDIT_WEBHOOK_TOKEN"] = "test-callback-token"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin-secret"

import pytest
from fastapi.testclient import TestClient

from ngantri.app import app
from ngantri.auth import ADMIN_SESSION_COOKIE, MERCHANT_SESSION_COOKIE, admin_sessions, hash_password
from ngantri.database import db_manager
from ngantri.models import BuyerSession, Menu, MenuCategory, Merchant

WEBHOOK_TOKEN = "test-callback-token"
BUYER_PHONE = "081234567890"


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh tables and no admin sessions for every test."""
    db_manager.drop_tables()
    db_manager.create_tables()
    admin_sessions.sessions.clear()
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = db_manager.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_merchant(db):
    counter = {"n": 0}

    def _make(name="Warung Bu Sri", is_available=True, password="password123", phone_number=None):
        counter["n"] += 1
        merchant = Merchant(
            phone_number=phone_number or f"+6281200000{counter['n']:03d}",
            password_hash=hash_password(password),
            merchant_number=counter["n"],
            name=name,
            is_available=is_available,
        )
        db.add(merchant)
        db.commit()
        return merchant

    return _make


@pytest.fixture
def make_menu(db):
    categories = {}

    def _make(merchant, name="Nasi Goreng", price=15000, is_available=True):
        category = categories.get(merchant.id)
        if category is None:
            category = MenuCategory(merchant_id=merchant.id, name="Makanan")
            db.add(category)
            db.flush()
            categories[merchant.id] = category

        menu = Menu(
            merchant_id=merchant.id,
            category_id=category.id,
            name=name,
            price=price,
            is_available=is_available,
        )
        db.add(menu)
        db.commit()
        return menu

    return _make


@pytest.fixture
def buyer_session(db):
    session = BuyerSession(table_number=7)
    db.add(session)
    db.commit()
    return session


@pytest.fixture
def merchant_client(client):
    """Client logged in as the given merchant."""

    def _login(merchant):
        client.cookies.set(MERCHANT_SESSION_COOKIE, merchant.id)
        return client

    return _login


@pytest.fixture
def admin_client(client):
    token = admin_sessions.create("admin")
    client.cookies.set(ADMIN_SESSION_COOKIE, token)
    return client
