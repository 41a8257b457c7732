import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from skillnet import models
from skillnet.config import Settings, get_settings
from skillnet.database import create_db_and_tables, get_session
from skillnet.main import app
from skillnet.services import AuthService


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    return Settings()


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session, settings):
    """Test client whose requests use the test `session`."""
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session, settings):
    def _make(pseudo: str, password: str = "secret") -> models.User:
        return AuthService(session, settings).register(pseudo, f"{pseudo}@example.com", password)
    return _make


@pytest.fixture
def auth_headers(client):
    """Register (if needed) and log in `pseudo`, returning bearer headers."""
    def _headers(pseudo: str, password: str = "secret") -> dict:
        client.post('/auth/register', json={'pseudo': pseudo, 'email': f'{pseudo}@example.com', 'password': password})
        r = client.post('/auth/login', json={'identifier': pseudo, 'password': password})
        assert r.status_code == 200
        return {'Authorization': f"Bearer {r.json()['access_token']}"}
    return _headers
