"""Test configuration and fixtures for the helpdesk knowledge base."""

import math
import zlib
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# mypy: disable-error-code="import-untyped"
from testcontainers.core.docker_client import DockerClient
from testcontainers.postgres import PostgresContainer

from helpdesk_rag.infrastructure.config.settings import get_settings
from helpdesk_rag.infrastructure.database.session import Base, async_session
from helpdesk_rag.infrastructure.logging import configure_testing_logging
from helpdesk_rag.interfaces.api.dependencies import get_knowledge_service
from helpdesk_rag.interfaces.main import app
from helpdesk_rag.modules.common.exceptions import EmbeddingError
from helpdesk_rag.modules.knowledge.models import KnowledgeChunk  # noqa: F401
from helpdesk_rag.modules.knowledge.services import KnowledgeService
from helpdesk_rag.modules.knowledge.store import KnowledgeChunkStore

configure_testing_logging()

PGVECTOR_IMAGE = "pgvector/pgvector:pg16"


class FakeEmbeddingClient:
    """Deterministic bag-of-words embedder with the configured dimension.

    Identical texts get identical vectors and texts sharing words get close
    vectors, which is enough to exercise ordering and scoring.
    """

    def __init__(self, dimension: int = 768, fail_after: Optional[int] = None):
        self.dimension = dimension
        self.fail_after = fail_after
        self.calls: List[str] = []

    def _vector(self, value: str) -> List[float]:
        vector = [0.0] * self.dimension
        for word in value.split():
            vector[zlib.crc32(word.encode()) % self.dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def embed(self, value: str) -> List[float]:
        if self.fail_after is not None and len(self.calls) >= self.fail_after:
            raise EmbeddingError("Embedding API returned status: 503")
        self.calls.append(value)
        return self._vector(value)

    async def embed_many(self, values: List[str]) -> List[List[float]]:
        return [await self.embed(value) for value in values]

    def info(self) -> Dict[str, Any]:
        return {"model_name": "fake", "dimension": self.dimension, "api_url": "http://embedding.test/embed"}

    async def aclose(self) -> None:
        pass


def is_docker_running() -> bool:
    """Check if Docker daemon is running."""
    try:
        DockerClient()
        return True
    except Exception:
        return False


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def fake_embedding_client(settings):
    return FakeEmbeddingClient(dimension=settings.EMBEDDING_DIMENSION)


@pytest.fixture
def mock_store():
    store = AsyncMock(spec=KnowledgeChunkStore)
    store.replace.return_value = []
    store.nearest.return_value = []
    store.delete_by_source_id.return_value = 0
    return store


@pytest.fixture
def mock_db():
    return MagicMock(spec=AsyncSession)


@pytest.fixture
def session_factory(mock_db):
    """Callable returning an async context manager that yields the mock session."""

    @asynccontextmanager
    async def factory():
        yield mock_db

    return factory


@pytest.fixture(scope="session")
def pg_container():
    """Create a PostgreSQL container with the pgvector extension available."""
    if not is_docker_running():
        pytest.skip("Docker is required, but not running")

    with PostgresContainer(PGVECTOR_IMAGE) as pg:
        yield pg


@pytest_asyncio.fixture(scope="function")
async def test_db_url(pg_container):
    """Create a proper asyncpg URL for PostgreSQL."""
    host = pg_container.get_container_host_ip()
    port = pg_container.get_exposed_port(5432)

    user = getattr(pg_container, "username", "test")
    password = getattr(pg_container, "password", "test")
    db = getattr(pg_container, "dbname", "test")

    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(test_db_url):
    """Create a SQLAlchemy engine with the knowledge tables in place."""
    engine = create_async_engine(test_db_url, echo=False)
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_db_engine):
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def knowledge_service(fake_embedding_client, settings):
    """Engine over the real store with the fake embedder."""
    return KnowledgeService(store=KnowledgeChunkStore(), embedding_client=fake_embedding_client, settings=settings)


@pytest_asyncio.fixture(scope="function")
async def client(mock_store, fake_embedding_client, settings, mock_db):
    """API client whose engine runs against a mocked store and the fake embedder."""
    app.dependency_overrides = {}

    service = KnowledgeService(store=mock_store, embedding_client=fake_embedding_client, settings=settings)

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[async_session] = override_get_db
    app.dependency_overrides[get_knowledge_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
