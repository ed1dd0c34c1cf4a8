from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

from ..config.settings import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.LOG_SQL_QUERIES,
    future=True,
    pool_size=settings.POSTGRES_POOL_SIZE,
    max_overflow=settings.POSTGRES_MAX_OVERFLOW,
    pool_timeout=settings.POSTGRES_POOL_TIMEOUT,
    connect_args={"server_settings": {"statement_timeout": str(settings.POSTGRES_STATEMENT_TIMEOUT_MS)}},
)

local_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase, MappedAsDataclass):
    """Base class for all database models.

    Combines SQLAlchemy's DeclarativeBase with MappedAsDataclass so models get
    generated ``__init__``/``__repr__``/``__eq__`` from their ``Mapped``
    annotations.

    Note:
        All database models should inherit from this base class so that
        ``create_tables()`` picks them up through ``Base.metadata``.
    """

    pass


async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session management with proper lifecycle.

    Yields:
        AsyncSession: A configured async database session.

    Note:
        Designed to be used as a FastAPI dependency via
        ``Depends(async_session)``. The session is closed when the request
        finishes; transactions are committed or rolled back by the services.

    Example:
        ```python
        @router.post("/search")
        async def search(db: AsyncSession = Depends(async_session)):
            ...
        ```
    """
    async_get_db = local_session
    async with async_get_db() as db:
        yield db


async def create_tables() -> None:
    """Create the pgvector extension and all tables if they don't exist.

    The ``vector`` extension must exist before the ``knowledge_chunks`` table
    (and its HNSW index) can be created, so it is installed first in
    the same transaction.

    Note:
        This function is idempotent. For production deployments, prefer a
        migration tool such as Alembic.
    """
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
