"""
Pytest configuration and fixtures.

Every test gets its own SQLite database file; the app's `get_db` dependency is
overridden to open sessions on it, and requests authenticate with JWTs signed
with TEST_JWT_SECRET.
"""
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database.engine import get_db, register_models
from app.features.users.auth import JWTAuthProvider
from app.main import app
from tests.factories import TEST_JWT_SECRET, make_token


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async engine on a fresh database file with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    metadata = register_models()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

@pytest_asyncio.fixture
async def db(session_factory):
    """Session for arranging and inspecting data."""
    async with session_factory() as session:
        yield session

@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app, in the test's event loop."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    previous_provider = app.state.auth_provider
    app.dependency_overrides[get_db] = override_get_db
    app.state.auth_provider = JWTAuthProvider(TEST_JWT_SECRET, "HS256")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.auth_provider = previous_provider

@pytest.fixture
def auth_headers():
    """Build request headers for a user, optionally naming an organization."""
    def build(user, organization_id: str | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {make_token(user.id)}"}
        if organization_id:
            headers["x-organization-id"] = organization_id
        return headers
    return build

def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests that go through the HTTP app"
    )
