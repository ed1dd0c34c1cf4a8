"""PostgreSQL/pgvector persistence for knowledge chunks."""

from datetime import UTC, datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.logging import get_logger
from ..common.exceptions import StoreError
from .crud import knowledge_chunk_crud
from .models import KnowledgeChunk
from .schemas import KnowledgeChunkCreate, KnowledgeChunkRead, SourceType

logger = get_logger(__name__)


class KnowledgeChunkStore:
    """Tenant-scoped vector store over the ``knowledge_chunks`` table.

    Similarity is pgvector's cosine distance (``<=>``), in [0, 2]. All
    database failures, including statement and pool timeouts, are raised as
    ``StoreError``; writes are rolled back first.
    """

    async def replace(
        self,
        tenant_id: str,
        source_id: str,
        chunks: Sequence[KnowledgeChunkCreate],
        db: AsyncSession,
    ) -> List[KnowledgeChunkRead]:
        """Atomically swap the chunks one tenant stores for ``source_id`` for ``chunks``.

        The delete and the insert are committed together, so readers see
        either the old set or the new one. Chunks other tenants store under
        the same ``source_id`` are left alone.

        Args:
            tenant_id: Tenant whose chunks are replaced, compared lowercased
            source_id: Source whose chunks are replaced
            chunks: New chunks; an empty sequence just clears the source
            db: Database session

        Returns:
            The inserted chunks as stored

        Raises:
            StoreError: If the transaction fails; nothing is changed
        """
        now = datetime.now(UTC)
        rows = [
            {
                "tenant_id": item.tenant_id.lower(),
                "source_type": item.source_type.value,
                "source_id": item.source_id,
                "source_title": item.source_title,
                "content": item.content,
                "embedding": list(item.embedding),
                "extra_metadata": dict(item.metadata),
                "created_at": now,
            }
            for item in chunks
        ]

        try:
            await db.execute(
                delete(KnowledgeChunk).where(
                    KnowledgeChunk.tenant_id == tenant_id.lower(),
                    KnowledgeChunk.source_id == source_id,
                )
            )
            created: List[KnowledgeChunkRead] = []
            if rows:
                result = await db.execute(insert(KnowledgeChunk).returning(KnowledgeChunk), rows)
                created = [self._to_read(row) for row in result.scalars().all()]
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                f"Failed to replace chunks for source {source_id}: {e}",
                extra={"source_id": source_id, "tenant_id": tenant_id},
            )
            raise StoreError(f"Failed to replace chunks for source {source_id}") from e

        return created

    async def nearest(
        self,
        tenant_id: str,
        embedding: List[float],
        limit: int,
        db: AsyncSession,
    ) -> List[Tuple[KnowledgeChunkRead, float]]:
        """Return up to ``limit`` chunks of one tenant, closest first, with their cosine distances."""
        distance = KnowledgeChunk.embedding.cosine_distance(embedding).label("distance")
        stmt = (
            select(KnowledgeChunk, distance)
            .where(KnowledgeChunk.tenant_id == tenant_id.lower())
            .order_by(distance)
            .limit(limit)
        )

        try:
            result = await db.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Nearest-neighbour query failed: {e}", extra={"tenant_id": tenant_id})
            raise StoreError("Nearest-neighbour query failed") from e

        return [(self._to_read(row.KnowledgeChunk), float(row.distance)) for row in rows]

    async def distance(self, chunk_id: UUID, embedding: List[float], db: AsyncSession) -> Optional[float]:
        """Exact cosine distance between one stored chunk and ``embedding``, or None if the chunk is gone."""
        stmt = select(KnowledgeChunk.embedding.cosine_distance(embedding)).where(KnowledgeChunk.id == chunk_id)

        try:
            result = await db.execute(stmt)
            value = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Distance query failed for chunk {chunk_id}") from e

        return None if value is None else float(value)

    async def delete_by_source_id(self, source_id: str, db: AsyncSession) -> int:
        """Delete every chunk of ``source_id`` and return how many were removed."""
        try:
            result = await db.execute(delete(KnowledgeChunk).where(KnowledgeChunk.source_id == source_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to delete chunks for source {source_id}: {e}", extra={"source_id": source_id})
            raise StoreError(f"Failed to delete chunks for source {source_id}") from e

        return result.rowcount or 0

    async def exists(
        self,
        db: AsyncSession,
        source_id: Optional[str] = None,
        source_type: Optional[SourceType] = None,
    ) -> bool:
        """Check whether any chunk matches the given source id and/or source type."""
        filters = {}
        if source_id is not None:
            filters["source_id"] = source_id
        if source_type is not None:
            filters["source_type"] = SourceType(source_type).value

        try:
            return await knowledge_chunk_crud.exists(db=db, **filters)
        except SQLAlchemyError as e:
            raise StoreError("Existence check failed") from e

    async def count(self, source_id: str, db: AsyncSession) -> int:
        try:
            return await knowledge_chunk_crud.count(db=db, source_id=source_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Count failed for source {source_id}") from e

    @staticmethod
    def _to_read(chunk: KnowledgeChunk) -> KnowledgeChunkRead:
        return KnowledgeChunkRead(
            id=chunk.id,
            tenant_id=chunk.tenant_id,
            source_type=SourceType(chunk.source_type),
            source_id=chunk.source_id,
            source_title=chunk.source_title,
            content=chunk.content,
            embedding=chunk.embedding,
            metadata=chunk.extra_metadata or {},
            created_at=chunk.created_at,
        )
