"""
Pytest configuration and fixtures for Crosspost API tests.
"""
import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crosspost.database import Base, get_db
from crosspost.limiter import limiter
from crosspost.main import app
from crosspost.models.user import User
from crosspost.models.connection import Connection, PERSONAL
from crosspost.models.draft import Draft
from crosspost.auth import (
    RequestContext,
    get_password_hash,
    create_tokens,
    resolve_role,
    CONTENT_MANAGER,
    SUPER_ADMIN,
    VIEWER,
)
from crosspost.publishing.upload_post import UploadPostClient, get_upload_post_client

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None


def get_test_db():
    """Get the shared test database session."""
    yield _test_session


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    Base.metadata.create_all(bind=engine)
    _test_session = TestingSessionLocal()
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def upload_client(db):
    """Fake Upload-Post client injected into every route that talks to it."""
    fake = MagicMock(spec=UploadPostClient)
    app.dependency_overrides[get_upload_post_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_upload_post_client, None)


@pytest.fixture(scope="function")
def unconfigured_upload_client(db):
    """Behave as if UPLOAD_POST_API_KEY is not set."""
    app.dependency_overrides[get_upload_post_client] = lambda: None
    yield None
    app.dependency_overrides.pop(get_upload_post_client, None)


# ============================================================
# USERS
# ============================================================

@pytest.fixture(scope="function")
def make_user(db):
    """Factory for users with a given role."""
    def _make(email: str, role: str = CONTENT_MANAGER, password: str = "testpassword123") -> User:
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            display_name=email.split("@")[0],
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture(scope="function")
def test_user(make_user):
    return make_user("test@example.com", CONTENT_MANAGER)


@pytest.fixture(scope="function")
def other_user(make_user):
    return make_user("other@example.com", CONTENT_MANAGER)


@pytest.fixture(scope="function")
def admin_user(make_user):
    return make_user("boss@example.com", SUPER_ADMIN)


@pytest.fixture(scope="function")
def viewer_user(make_user):
    return make_user("viewer@example.com", VIEWER)


def _headers_for(user: User) -> dict:
    access_token, _ = create_tokens(user.id)
    return {"Authorization": f"Bearer {access_token}"}


def _context_for(user: User) -> RequestContext:
    return RequestContext(user_id=user.id, email=user.email, role=resolve_role(user))


@pytest.fixture(scope="function")
def headers_for():
    return _headers_for


@pytest.fixture(scope="function")
def context_for():
    return _context_for


@pytest.fixture(scope="function")
def auth_headers(test_user):
    """Get auth headers for the test user."""
    return _headers_for(test_user)


@pytest.fixture(scope="function")
def ctx(test_user):
    return _context_for(test_user)


# ============================================================
# PUBLISHING DATA
# ============================================================

@pytest.fixture(scope="function")
def make_connection(db):
    def _make(user: User, platform: str, ownership: str = PERSONAL, active: bool = True, **fields) -> Connection:
        fields.setdefault("external_username", f"{ownership}_{user.id}")
        connection = Connection(
            user_id=user.id,
            platform=platform,
            ownership=ownership,
            active=active,
            **fields,
        )
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection
    return _make


@pytest.fixture(scope="function")
def make_draft(db):
    def _make(user: User, **fields) -> Draft:
        fields.setdefault("text_content", "Hello")
        fields.setdefault("media_urls", [])
        fields.setdefault("target_platforms", [])
        fields.setdefault("target_accounts", [])
        draft = Draft(author_id=user.id, **fields)
        db.add(draft)
        db.commit()
        db.refresh(draft)
        return draft
    return _make


@pytest.fixture(scope="function")
def x_and_linkedin(test_user, make_connection):
    """Two personal connections for the test user."""
    return (
        make_connection(test_user, "x", platform_username="Test on X"),
        make_connection(test_user, "linkedin", platform_username="Test on LinkedIn"),
    )


@pytest.fixture(scope="function")
def ready_draft(test_user, make_draft, x_and_linkedin):
    """Text draft targeting x and linkedin, ready to dispatch."""
    x, linkedin = x_and_linkedin
    return make_draft(
        test_user,
        text_content="Hello",
        target_platforms=["x", "linkedin"],
        target_accounts=[x.id, linkedin.id],
    )
