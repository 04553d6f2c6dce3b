# tests/conftest.py
import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# 1) Tell our code to use an in-memory SQLite before any imports
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

from portfolio_manager.main import app    # safe: creates tables on a throwaway engine
from portfolio_manager.db.session import Base, get_db
from portfolio_manager.models import Asset, AssetType, User
from portfolio_manager.routes import auth_router


def make_engine():
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def db():
    engine = make_engine()
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def user(db):
    u = User(username="alice", email="alice@example.com", full_name="Alice Example")
    db.add(u); db.commit(); db.refresh(u)
    return u


@pytest.fixture
def stock(db):
    a = Asset(symbol="AAPL", name="Apple Inc.", asset_type=AssetType.STOCK, current_price=Decimal("100"))
    db.add(a); db.commit(); db.refresh(a)
    return a


@pytest.fixture
def client():
    engine = make_engine()
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def outbox(monkeypatch):
    """Captures sign-in links instead of sending them through SendGrid."""
    sent = []
    monkeypatch.setattr(auth_router, "send_email_link", lambda recipient, token: sent.append((recipient, token)))
    return sent


@pytest.fixture
def login(client, outbox):
    """Returns a helper that signs in through the emailed link and builds the auth header."""
    def _login(email):
        resp = client.post("/auth/request-token", json={"email": email})
        assert resp.status_code == 200, resp.text
        recipient, link_token = outbox[-1]
        assert recipient == email
        verified = client.get("/auth/verify-token", params={"token": link_token})
        assert verified.status_code == 200, verified.text
        return {"Authorization": f"Bearer {verified.json()['access_token']}"}
    return _login
