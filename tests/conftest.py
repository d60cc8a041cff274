"""
Shared pytest fixtures for the records API test suite.

Provides:
    - _tables: per-test table creation/teardown (autouse)
    - _no_broker: replaces the Celery fan-out task with a mock (autouse)
    - db_session: SQLAlchemy session bound to the in-memory engine
    - client: FastAPI test client sharing ``db_session``
    - admin / person: an administrator and a plain user
    - auth_headers / user_headers: bearer headers for them
    - make_module / make_field: schema store shortcuts
"""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="recordhub-uploads-")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["S3_ENDPOINT_URL"] = ""

from unittest.mock import MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.api import deps  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.schemas.modules import FieldCreate, ModuleCreate  # noqa: E402
from app.services.auth import issue_token  # noqa: E402
from app.services.permission_cache import permission_cache  # noqa: E402
from app.services.schema_store import fields, modules  # noqa: E402


# ── Database fixtures ────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _tables():
    """Per-test: create all tables, drop them afterwards."""
    # Tables are recreated per test and ids are fresh; drop cached decisions
    permission_cache.clear()
    Base.metadata.create_all(bind=engine)
    yield
    permission_cache.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _no_broker():
    """Record events are queued through a mock instead of a Celery broker."""
    mock_task = MagicMock()
    with patch("app.tasks.events.process_event", mock_task):
        yield mock_task


@pytest.fixture()
def db_session(_tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session):
    def _get_db():
        yield db_session

    fastapi_app.dependency_overrides[deps.get_db] = _get_db
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


# ── Principals ───────────────────────────────────────────────────────────


def _user(db_session, email: str, role: UserRole, name: str) -> User:
    user = User(email=email, name=name, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def admin(db_session):
    return _user(db_session, "admin@example.com", UserRole.admin, "Ada Admin")


@pytest.fixture()
def person(db_session):
    return _user(db_session, "pat@example.com", UserRole.user, "Pat User")


@pytest.fixture()
def auth_headers(admin):
    return {"Authorization": f"Bearer {issue_token(admin)}"}


@pytest.fixture()
def user_headers(person):
    return {"Authorization": f"Bearer {issue_token(person)}"}


# ── Schema shortcuts ─────────────────────────────────────────────────────


@pytest.fixture()
def make_module(db_session):
    def _make(name: str = "tickets", **kwargs):
        kwargs.setdefault("display_name", name.title())
        return modules.create(db_session, ModuleCreate(name=name, **kwargs))

    return _make


@pytest.fixture()
def make_field(db_session):
    def _make(module_name: str, name: str, **kwargs):
        kwargs.setdefault("display_name", name.replace("_", " ").title())
        return fields.create(db_session, module_name, FieldCreate(name=name, **kwargs))

    return _make
