import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["JWT_ACCESS_SECRET"] = "test-secret-test-secret-test-secret-0123"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from parcelgis.db.init_db import init_db  # noqa: E402
from parcelgis.db.session import get_db, get_session_factory  # noqa: E402
from parcelgis.main import app  # noqa: E402
from parcelgis.system.rate_limit import api_limiter, login_limiter, register_limiter  # noqa: E402

PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    for limiter in (api_limiter, login_limiter, register_limiter):
        limiter.reset()
    yield
    for limiter in (api_limiter, login_limiter, register_limiter):
        limiter.reset()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    def _register(username="alice", email=None, password=PASSWORD, **overrides):
        body = {
            "username": username,
            "email": email or f"{username.lower()}@example.com",
            "password": password,
            "phoneNumber": "512-555-0100",
            "companyName": "Acme Land Co",
            "disclaimerAccepted": True,
        }
        body.update(overrides)
        return client.post("/api/auth/register", json=body)

    return _register


@pytest.fixture
def login(client):
    def _login(username="alice", password=PASSWORD, device=None):
        body = {"username": username, "password": password}
        if device:
            body["deviceFingerprint"] = device
        return client.post("/api/auth/login", json=body)

    return _login


@pytest.fixture
def auth_headers(register, login):
    """Register + log in a user; returns its bearer headers."""

    def _auth_headers(username="alice", **register_overrides):
        assert register(username, **register_overrides).status_code == 201
        response = login(username)
        assert response.status_code == 200
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}

    return _auth_headers
