"""
Test configuration and fixtures.

Provides database fixtures, async session management, source factories and
an in-memory adapter that can be registered under any source key.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

# Import core module to trigger adapter registration
import app.core  # noqa: F401
from app.core.adapters.base import BaseAdapter, NormalizedItem
from app.core.registry import adapter_registry, register_adapter
from app.models import Base, ContentConfig, ContentSource


@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session; ORM objects stay usable after commit."""
    session = AsyncSession(test_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()


@pytest.fixture
def make_source(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that persists a ContentSource and returns it."""

    async def _make(source_key: str, is_active: bool = True, config: dict[str, Any] | None = None) -> ContentSource:
        source = ContentSource(
            source_key=source_key,
            name=source_key.replace("-", " ").title(),
            api_base_url=f"https://api.{source_key}.test",
            config=config or {},
            is_active=is_active,
        )
        db_session.add(source)
        await db_session.commit()
        await db_session.refresh(source)
        return source

    return _make


@pytest.fixture
def set_config(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that writes a content_config entry."""

    async def _set(config_key: str, config_value: Any, is_active: bool = True) -> ContentConfig:
        entry = ContentConfig(config_key=config_key, config_value=config_value, is_active=is_active)
        db_session.add(entry)
        await db_session.commit()
        return entry

    return _set


class StaticAdapter(BaseAdapter):
    """Adapter serving a fixed list of item dicts; each fetch returns a copy."""

    items: list[dict[str, Any]] = []
    fetch_error: Exception | None = None
    fetch_calls: int = 0

    async def fetch(self) -> Any:
        type(self).fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return [dict(item) for item in self.items]

    async def parse(self, raw: Any) -> list[NormalizedItem]:
        return [NormalizedItem(**entry) for entry in raw]


@pytest.fixture
def fake_adapter() -> Callable[..., type[StaticAdapter]]:
    """
    Register a StaticAdapter subclass under a source key for one test.

    Any adapter previously registered under the key is restored afterwards.
    """
    previous: dict[str, type[BaseAdapter] | None] = {}

    def _register(
        source_key: str,
        items: list[dict[str, Any]] | None = None,
        fetch_error: Exception | None = None,
    ) -> type[StaticAdapter]:
        previous.setdefault(source_key, adapter_registry.get(source_key))
        adapter_cls = type(
            f"StaticAdapter_{source_key.replace('-', '_')}",
            (StaticAdapter,),
            {"items": list(items or []), "fetch_error": fetch_error, "fetch_calls": 0},
        )
        return register_adapter(source_key)(adapter_cls)

    yield _register

    for source_key, adapter_cls in previous.items():
        if adapter_cls is None:
            adapter_registry.pop(source_key, None)
        else:
            adapter_registry[source_key] = adapter_cls


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the database dependency overridden."""
    from app.api.deps import get_db
    from app.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
