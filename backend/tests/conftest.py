"""
Shared pytest fixtures for the Sharegate backend test suite.

Every test gets its own SQLite file database so that concurrent tests can use
real connections and real write locks.
"""

from datetime import timedelta
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

from sharegate import crud, models, schemas
from sharegate.api import deps
from sharegate.core.config import settings
from sharegate.db.base import Base
from sharegate.db.session import build_engine
from sharegate.main import app
from sharegate.services.download_authorizer import DownloadAuthorizer
from sharegate.services.object_store import LocalObjectStore
from sharegate.services.rate_limiter import RateLimiter
from sharegate.utils.time_utils import utcnow

OWNER_EMAIL = "owner@example.com"
OTHER_EMAIL = "someone-else@example.com"
SIGNED_URL_BASE = "https://files.example.test/secure-files"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sharegate-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture
def owner(db) -> models.User:
    return crud.user.create_mirror(db, email=OWNER_EMAIL, display_name="Owner")


@pytest.fixture
def make_file(db, owner):
    """Factory registering file metadata for `owner` (or another user)."""
    def _make(user: models.User = None, **overrides) -> models.File:
        user = user or owner
        data = dict(
            filename="report.pdf",
            original_filename="Q3 report.pdf",
            file_size=2048,
            content_type="application/pdf",
            storage_path=f"{user.id}/report.pdf",
        )
        data.update(overrides)
        return crud.file.create_with_owner(db, obj_in=schemas.FileCreate(**data), user_id=user.id)
    return _make


@pytest.fixture
def make_link(db, make_file):
    """Factory creating a share link; keyword arguments are the link policy."""
    def _make(file: models.File = None, **policy) -> models.ShareLink:
        file = file or make_file()
        return crud.share_link.create_with_fresh_token(
            db, file_id=file.id, obj_in=schemas.ShareLinkPolicy(**policy)
        )
    return _make


@pytest.fixture
def expire_link(db):
    """Backdate a link's expiry. New links only accept expiries in the future."""
    def _expire(link: models.ShareLink, at=None) -> models.ShareLink:
        link.expires_at = at or utcnow() - timedelta(seconds=1)
        db.add(link)
        db.commit()
        db.refresh(link)
        return link
    return _expire


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(ip_limit=20, token_failure_limit=10, window=timedelta(hours=1))


@pytest.fixture
def authorizer(rate_limiter) -> DownloadAuthorizer:
    return DownloadAuthorizer(rate_limiter)


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(
        root=str(tmp_path / "objects"), base_url=SIGNED_URL_BASE, secret_key="test-secret"
    )


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def client(session_factory, object_store, authorizer):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_object_store] = lambda: object_store
    app.dependency_overrides[deps.get_authorizer] = lambda: authorizer
    yield TestClient(app)
    app.dependency_overrides.clear()


def issue_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a bearer token the way the external auth provider does."""
    expire = utcnow() + (expires_delta or timedelta(minutes=30))
    return jwt.encode({"exp": expire, "sub": subject}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def access_token_for():
    return issue_access_token


def auth_headers_for(email: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(email)}"}


@pytest.fixture
def owner_headers(owner) -> Dict[str, str]:
    return auth_headers_for(owner.email)


@pytest.fixture
def other_headers() -> Dict[str, str]:
    return auth_headers_for(OTHER_EMAIL)
