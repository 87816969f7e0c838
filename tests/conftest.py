"""Pytest configuration and fixtures"""

import os

# auth_router refuses to import without a secret; keep the app DB in memory
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from taskup.auth.auth_router import RequestContext, create_access_token  # noqa: E402
from taskup.database import Base, get_db  # noqa: E402
from taskup.main import app  # noqa: E402
from taskup.models.organization import Member, Organization  # noqa: E402
from taskup.models.task import Task  # noqa: E402
from taskup.models.user import User  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database session."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def org(db):
    organization = Organization(name="Acme", slug="acme")
    db.add(organization)
    db.commit()
    return organization


@pytest.fixture
def make_user(db, org):
    """Create a member of ``org`` (or of ``organization`` when given)."""
    def _make_user(email, name=None, role="member", organization=None):
        organization = organization or org
        user = User(
            email=email,
            name=name,
            password_hash="not-a-real-hash",
            active_organization_id=organization.id,
        )
        db.add(user)
        db.flush()
        db.add(Member(organization_id=organization.id, user_id=user.id, role=role))
        db.commit()
        return user

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com", "Alice", role="owner")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", "Bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol@example.com", "Carol")


@pytest.fixture
def ctx(alice, org):
    return RequestContext(user_id=alice.id, organization_id=org.id, role="owner")


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _auth_headers


@pytest.fixture
def make_task(db, org):
    """Insert a task directly, bypassing scoring."""
    def _make_task(title="Task", assignees=(), status="todo", score=20, difficulty="medium", **kwargs):
        task = Task(
            title=title,
            status=status,
            score=score,
            difficulty=difficulty,
            priority=kwargs.pop("priority", "medium"),
            organization_id=kwargs.pop("organization_id", org.id),
            **kwargs,
        )
        task.assignees = list(assignees)
        db.add(task)
        db.commit()
        return task

    return _make_task
