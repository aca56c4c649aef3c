import os

# Settings are read on first import; point them at an in-memory database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_USERNAME", "admin@showroom")
os.environ.setdefault("ADMIN_PASSWORD", "s3cret")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from showroom.auth import Principal, create_access_token
from showroom.domain.models import Base, InventoryItem
from showroom.infrastructure.cache import ViewCache, get_view_cache
from showroom.infrastructure.db import get_db
from showroom.main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def session_factory(db):
    """Opens further sessions on the test database, e.g. a competing request."""
    return TestingSessionLocal


@pytest.fixture
def view_cache():
    return ViewCache()


@pytest.fixture
def client(db, view_cache):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_view_cache] = lambda: view_cache
    # no context manager: the lifespan would run migrations against the real engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def principal():
    return Principal(user_id="tester@showroom")


@pytest.fixture
def auth_headers(principal):
    return {"Authorization": f"Bearer {create_access_token(principal.user_id)}"}


@pytest.fixture
def make_item(db):
    counter = {"n": 0}

    def _make(stock=5, price="100.00", name=None, sku=None):
        counter["n"] += 1
        item = InventoryItem(
            name=name or f"Walnut Chair {counter['n']}",
            sku=sku or f"WC-{counter['n']:03d}",
            style="Modern",
            material="Walnut",
            dimensions="50x50x90",
            stock=stock,
            price=Decimal(price),
        )
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture
def order_payload():
    def _payload(*lines, **extra):
        payload = {
            "customer": {
                "name": "Ada Lovelace",
                "email": "ada@example.com",
                "phone": "555-0100",
                "address": "12 Analytical Row, London",
            },
            "items": [{"item_id": item_id, "quantity": quantity} for item_id, quantity in lines],
        }
        payload.update(extra)
        return payload

    return _payload
