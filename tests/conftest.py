"""
Test configuration and fixtures.
"""
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from geo_historian.db import Base, get_session_factory
from geo_historian.main import app, get_rate_limiter
from geo_historian.rate_limit import RateLimiter


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Fresh file-backed SQLite database per test.

    A file (rather than :memory:) gives every session its own connection,
    which the concurrent preload pipelines need.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=30, window_seconds=3600, clock=clock)


@pytest_asyncio.fixture
async def client(session_factory, limiter):
    """HTTP client bound to the app with the test database and limiter injected."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
