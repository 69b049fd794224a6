"""Shared fixtures for the file manager tests."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import drive_server.models  # noqa: F401  # import models so metadata is populated
from drive_server.db.base import Base
from drive_server.db.session import build_engine, get_db
from drive_server.main import create_app
from drive_server.models.user import User
from drive_server.services.storage import LocalDiskStorage, get_storage
from drive_server.services.tree_store import TreeStore


@pytest.fixture
def engine():
    """In-memory SQLite engine with the schema created.

    Yields:
        SQLAlchemy engine shared by every session of the test.
    """
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalDiskStorage(tmp_path / "storage")


@pytest.fixture
def tree(db, storage):
    return TreeStore(db, storage)


def _make_user(db, username):
    user = User(
        username=username,
        email=f"{username}@example.com",
        display_name=username.title(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db):
    """Primary test user (U1)."""
    return _make_user(db, "alice")


@pytest.fixture
def other_user(db):
    """Second user for isolation tests."""
    return _make_user(db, "bob")


@pytest.fixture
def app(session_factory, storage):
    """FastAPI app wired to the test database and storage."""
    test_app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_storage] = lambda: storage
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def api_user(client):
    """Create a user through the API and return its id."""
    resp = client.post(
        "/users",
        json={"username": "carol", "email": "carol@example.com", "display_name": "Carol"},
    )
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.fixture
def auth(api_user):
    return {"X-User-Id": str(api_user)}
