"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from backend.app.adapters.storage import InMemoryObjectStorage
from backend.app.api.auth import StubTokenResolver
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.engine import create_async_engine_from_url, create_session_factory
from backend.app.db.inmemory import InMemoryChunkStore, InMemoryDocumentRepository
from backend.app.db.models import Base
from backend.app.llm.client import DeterministicStubClient
from backend.app.main import create_app
from backend.app.services import Services, assemble_services

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


@pytest.fixture
def headers() -> dict[str, str]:
    """Bearer header accepted by the stub token resolver."""
    return {"Authorization": f"Bearer {USER_ID}"}


@pytest.fixture
def other_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OTHER_USER_ID}"}


@pytest.fixture
def settings() -> Settings:
    """Settings with every external collaborator disabled and inline ingestion."""
    return Settings(
        _env_file=None,
        database_url=None,
        redis_url=None,
        auth_url=None,
        storage_url=None,
        llm_api_key=None,
        ingest_mode="inline",
    )


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user_id=USER_ID)


@pytest.fixture
def other_ctx() -> RequestContext:
    return RequestContext(user_id=OTHER_USER_ID)


@pytest.fixture
def documents() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def chunks() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def completion() -> DeterministicStubClient:
    """Stub whose replies parse as an information_query intent."""
    return DeterministicStubClient(
        reply='{"category": "information_query", "confidence": 0.9, '
        '"description": "Asks about documents", "suggested_action": null}'
    )


@pytest.fixture
def services(
    settings: Settings,
    documents: InMemoryDocumentRepository,
    chunks: InMemoryChunkStore,
    storage: InMemoryObjectStorage,
    completion: DeterministicStubClient,
) -> Services:
    """In-process services wired like production."""
    return assemble_services(
        settings,
        documents=documents,
        chunks=chunks,
        storage=storage,
        completion=completion,
        token_resolver=StubTokenResolver(),
    )


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    """Test client over an app built from the in-process services."""
    with TestClient(create_app(services=services)) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the schema created.

    A file (rather than :memory:) lets every session see the same database.
    """
    engine = create_async_engine_from_url(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(sqlite_engine)


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    engine = create_async_engine_from_url(database_url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
