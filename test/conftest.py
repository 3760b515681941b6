"""
Pytest configuration and fixtures for fellis tests
"""

import os
import sys
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read at import time; point them at SQLite before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "")

import fellis.models  # noqa: E402, F401
from fellis.auth import hash_password  # noqa: E402
from fellis.database import Base, enable_sqlite_foreign_keys  # noqa: E402
from fellis.models.audit_log import AuditEntry  # noqa: E402
from fellis.models.user import User  # noqa: E402
from fellis.services.media_store import LocalMediaStore  # noqa: E402
from fellis.services.token_vault import TokenVault  # noqa: E402
from fellis.utils.audit_log import AuditLog  # noqa: E402
from fellis.utils.clock import utcnow  # noqa: E402

TEST_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """
    A fresh file-backed SQLite database per test.

    A file (rather than :memory:) lets the audit log and the import pipeline
    open their own sessions against the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fellis_test.db'}", echo=False)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Provide a database session for tests that need it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def audit(session_factory) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture
def media_store(tmp_path) -> LocalMediaStore:
    return LocalMediaStore(tmp_path / "uploads", "/uploads")


@pytest.fixture
def vault() -> TokenVault:
    return TokenVault(TEST_KEY)


@pytest.fixture
def make_user(session_factory):
    """Factory creating committed users; returns the detached User."""
    counter = {"n": 0}

    async def _make(name: str | None = None, **fields) -> User:
        counter["n"] += 1
        n = counter["n"]
        name = name or f"User {n}"
        fields.setdefault("handle", f"@user.{n}")
        fields.setdefault("email", f"user{n}@example.com")
        async with session_factory() as session:
            user = User(name=name, initials=name[:1].upper(), **fields)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture
async def test_user(make_user) -> User:
    return await make_user("Test User", password_hash=hash_password("testpassword"))


@pytest.fixture
async def facebook_user(make_user, vault) -> User:
    """A user with a linked Facebook account and a valid encrypted token."""
    return await make_user(
        "Facebook User",
        facebook_id="fb-100",
        fb_access_token=vault.encrypt("EAAB-live-token"),
        fb_token_expires_at=utcnow() + timedelta(days=30),
    )


@pytest.fixture
def audit_entries(session_factory):
    """Read back audit entries, optionally filtered by action."""
    from sqlalchemy import select

    async def _entries(action: str | None = None) -> list[AuditEntry]:
        async with session_factory() as session:
            query = select(AuditEntry).order_by(AuditEntry.id)
            if action is not None:
                query = query.where(AuditEntry.action == getattr(action, "value", action))
            result = await session.execute(query)
            return list(result.scalars().all())

    return _entries


class RecordingImportRunner:
    """Stands in for ImportTaskRunner: records submissions instead of starting tasks."""

    def __init__(self):
        self.submitted: list[tuple[int, str]] = []
        self.cancelled: list[int] = []

    def submit(self, user_id: int, token: str | None) -> bool:
        if not token:
            return False
        self.submitted.append((user_id, token))
        return True

    async def cancel(self, user_id: int) -> bool:
        self.cancelled.append(user_id)
        return False


@pytest.fixture
def import_runner() -> RecordingImportRunner:
    return RecordingImportRunner()


@pytest.fixture
def oauth_states():
    from fellis.utils.oauth_state import OAuthStateStore

    return OAuthStateStore()


@pytest.fixture
def app(session_factory, audit, media_store, vault, import_runner, oauth_states):
    """A fresh application wired to the per-test database and collaborators."""
    from fellis import dependencies
    from fellis.database import get_db
    from main import create_app

    test_app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[dependencies.get_audit_log] = lambda: audit
    test_app.dependency_overrides[dependencies.get_media_store] = lambda: media_store
    test_app.dependency_overrides[dependencies.get_token_vault] = lambda: vault
    test_app.dependency_overrides[dependencies.get_import_runner] = lambda: import_runner
    test_app.dependency_overrides[dependencies.get_oauth_state_store] = lambda: oauth_states

    yield test_app

    test_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    from httpx import ASGITransport, AsyncClient

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def session_headers(session_factory):
    """Open a session for a user and return the request headers carrying it."""
    from fellis.auth import SESSION_HEADER, create_session

    async def _headers(user: User, lang: str = "da") -> dict:
        async with session_factory() as session:
            session_id = await create_session(user.id, lang, session)
        return {SESSION_HEADER: session_id}

    return _headers
