"""Pytest configuration and fixtures."""
import os
import tempfile
import uuid

# Point the app at a throwaway SQLite file before anything imports settings
_TEST_DB_DIR = tempfile.mkdtemp(prefix="hubisck-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("APP_ENV", "development")

from unittest.mock import MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402

from app.db.base_class import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.middleware.custom_domain import invalidate_domain_cache  # noqa: E402
from app.models.link_page import LinkPage  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.dns_checker import DNSChallengeChecker  # noqa: E402
import app.models  # noqa: F401, E402
from tests.helpers import FakeDNS  # noqa: E402


# --- Per-test fixtures ---

@pytest.fixture(autouse=True)
def tables():
    """Fresh tables and an empty host cache for every test."""
    Base.metadata.create_all(bind=engine)
    invalidate_domain_cache()
    yield
    invalidate_domain_cache()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def recheck_task():
    """Celery is never reached from tests; scheduled re-checks are recorded on a mock."""
    with patch("app.tasks.domain_tasks.reverify_domain_task") as task:
        task.apply_async = MagicMock()
        yield task


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_dns():
    return FakeDNS()


@pytest.fixture
def checker(fake_dns):
    return DNSChallengeChecker(fake_dns)


@pytest.fixture
def make_user(db):
    def _make(email: str = None) -> User:
        user = User(id=uuid.uuid4(), email=email)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_page(db):
    def _make(user: User, slug: str, title: str = None) -> LinkPage:
        page = LinkPage(user_id=user.id, slug=slug, title=title or slug.title())
        db.add(page)
        db.commit()
        db.refresh(page)
        return page
    return _make


@pytest.fixture
async def client(checker):
    """
    Async HTTP client against the FastAPI app.
      - get_dns_checker overridden with the in-memory DNS backend
      - tables come from the autouse ``tables`` fixture
    """
    from app.main import app as fastapi_app
    from app.api import deps

    fastapi_app.dependency_overrides[deps.get_dns_checker] = lambda: checker

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
