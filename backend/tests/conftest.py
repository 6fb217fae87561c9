"""
CodeShift - Test Fixtures
=========================

Shared pytest fixtures for all tests.
"""

from collections.abc import AsyncGenerator
from types import SimpleNamespace
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.hash import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.api.deps import get_oracle
from src.api.main import app
from src.core.accounts import create_access_token
from src.core.cache import get_cache
from src.core.database import Base, get_db
from src.core.models import User
from src.core.pipeline import EditOracle
from tests.fakes import FakeCache, edit, fake_client, plan_reply


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# ==========================================================================
# Database Fixtures
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a clean database session for each test.

    Creates all tables before test, drops after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


# ==========================================================================
# Oracle Fixtures
# ==========================================================================

@pytest.fixture
def oracle_client() -> SimpleNamespace:
    """Default client: one new file, one plan line."""
    return fake_client(
        plan_reply(
            "Add a greeting helper",
            edit("src/greet.ts", "export const greet = () => 'hi';\n", new=True),
        )
    )


@pytest.fixture
def oracle(oracle_client: SimpleNamespace) -> EditOracle:
    return EditOracle(client=oracle_client)


# ==========================================================================
# HTTP Client Fixture
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    cache: FakeCache,
    oracle: EditOracle,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database, cache and oracle overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_oracle] = lambda: oracle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# User Fixtures
# ==========================================================================

@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """
    Create a test user.

    Password: TestPass123!
    """
    user = User(
        id=uuid4(),
        username="testuser",
        email="test@example.com",
        password_hash=bcrypt.hash("TestPass123!"),
        api_key=uuid4().hex + uuid4().hex,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second account, for ownership checks."""
    user = User(
        id=uuid4(),
        username="otheruser",
        email="other@example.com",
        password_hash=bcrypt.hash("OtherPass123!"),
        api_key=uuid4().hex + uuid4().hex,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# ==========================================================================
# Auth Fixtures
# ==========================================================================

@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get authorization headers for test user."""
    token = create_access_token(test_user.id, test_user.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_key_headers(test_user: User) -> dict[str, str]:
    return {"X-API-Key": test_user.api_key}


@pytest.fixture
def other_headers(other_user: User) -> dict[str, str]:
    token = create_access_token(other_user.id, other_user.username)
    return {"Authorization": f"Bearer {token}"}


# ==========================================================================
# Repository Fixtures
# ==========================================================================

@pytest.fixture
def sample_repo(tmp_path) -> str:
    """
    Small repository:

        src/auth/login.ts   (mentions "login")
        src/index.ts
        README.md
        node_modules/pkg/index.js   (ignored)
    """
    root = tmp_path / "repo"
    (root / "src" / "auth").mkdir(parents=True)
    (root / "node_modules" / "pkg").mkdir(parents=True)

    (root / "src" / "auth" / "login.ts").write_text("export function login() { return true; }\n")
    (root / "src" / "index.ts").write_text("export const main = () => 0;\n")
    (root / "README.md").write_text("# Sample\n")
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1;\n")
    return str(root)
