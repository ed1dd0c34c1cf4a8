"""Knowledge engine: ingestion and retrieval of helpdesk content."""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.config.settings import Settings, get_settings
from ...infrastructure.embedding import EmbeddingClient, get_embedding_client
from ...infrastructure.logging import get_logger
from ..common.exceptions import EmbeddingError, ValidationError
from ..text import chunk, is_valid_for_embedding, normalize
from .schemas import (
    IngestResult,
    IngestStatus,
    KnowledgeChunkCreate,
    KnowledgeChunkRead,
    ScoredChunk,
    SourceMetadata,
    SourceType,
    metadata_to_dict,
)
from .store import KnowledgeChunkStore

logger = get_logger(__name__)


def similarity_score(distance: float) -> float:
    """Convert a cosine distance into a similarity score clamped to [0, 1]."""
    return min(1.0, max(0.0, 1.0 - distance))


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValidationError(f"limit must be at least 1, got {limit}")


class KnowledgeService:
    """Ingests tickets and documents into the vector store and answers similarity queries.

    Ingestion of one source is all-or-nothing: every chunk is embedded
    before the store is touched, and the stored set is swapped in a single
    transaction. Content that fails validation is skipped with a warning
    and leaves the stored chunks unchanged.

    Tenants are compared lowercased. Retrieval never crosses tenants.
    """

    def __init__(
        self,
        store: Optional[KnowledgeChunkStore] = None,
        embedding_client: Optional[EmbeddingClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store or KnowledgeChunkStore()
        self.embedding_client = embedding_client or get_embedding_client()
        self.settings = settings or get_settings()

    async def ingest(
        self,
        tenant_id: str,
        source_type: SourceType,
        source_id: str,
        title: Optional[str],
        raw_content: Optional[str],
        metadata: Optional[SourceMetadata],
        db: AsyncSession,
    ) -> IngestResult:
        """Index (or re-index) one source.

        Args:
            tenant_id: Owning tenant, stored lowercased
            source_type: Kind of source
            source_id: External id; this tenant's previous chunks with this id are replaced
            title: Optional display title
            raw_content: Unnormalized content
            metadata: Typed metadata record or plain mapping
            db: Database session

        Returns:
            ``STORED`` with the number of chunks written, or ``SKIPPED`` with a reason

        Raises:
            EmbeddingError: If any chunk could not be embedded; the store is untouched
            StoreError: If the replacement transaction failed
        """
        source_type = SourceType(source_type)
        tenant = tenant_id.lower()
        settings = self.settings

        if not is_valid_for_embedding(raw_content, settings.MIN_CONTENT_LENGTH, settings.MAX_CONTENT_LENGTH):
            length = len(normalize(raw_content))
            reason = (
                f"normalized length {length} outside "
                f"[{settings.MIN_CONTENT_LENGTH}, {settings.MAX_CONTENT_LENGTH}]"
            )
            logger.warning(
                f"Skipping {source_type.value} {source_id}: {reason}",
                extra={"source_id": source_id, "tenant_id": tenant},
            )
            return IngestResult(status=IngestStatus.SKIPPED, source_id=source_id, reason=reason)

        pieces = [
            piece
            for piece in chunk(raw_content, settings.CHUNK_SIZE, settings.CHUNK_OVERLAP)
            if len(piece) >= settings.MIN_CONTENT_LENGTH
        ]
        if not pieces:
            reason = "no chunk reached the minimum content length"
            logger.warning(
                f"Skipping {source_type.value} {source_id}: {reason}",
                extra={"source_id": source_id, "tenant_id": tenant},
            )
            return IngestResult(status=IngestStatus.SKIPPED, source_id=source_id, reason=reason)

        try:
            embeddings = await self._embed_all(pieces)
        except EmbeddingError as e:
            logger.error(
                f"Embedding failed for {source_type.value} {source_id}: {e}",
                extra={"source_id": source_id, "tenant_id": tenant},
            )
            raise

        stored_metadata = metadata_to_dict(metadata)
        chunks = [
            KnowledgeChunkCreate(
                tenant_id=tenant,
                source_type=source_type,
                source_id=source_id,
                source_title=title,
                content=piece,
                embedding=embedding,
                metadata=stored_metadata,
            )
            for piece, embedding in zip(pieces, embeddings)
        ]

        await self.store.replace(tenant, source_id, chunks, db)

        logger.info(
            f"Stored {len(chunks)} chunks for {source_type.value} {source_id}",
            extra={"source_id": source_id, "tenant_id": tenant, "chunk_count": len(chunks)},
        )
        return IngestResult(status=IngestStatus.STORED, source_id=source_id, chunk_count=len(chunks))

    async def _embed_all(self, pieces: List[str]) -> List[List[float]]:
        if self.settings.EMBEDDING_BATCH_ENABLED:
            return await self.embedding_client.embed_many(pieces)
        return [await self.embedding_client.embed(piece) for piece in pieces]

    async def retrieve(self, tenant_id: str, query: str, limit: int, db: AsyncSession) -> List[KnowledgeChunkRead]:
        """Return up to ``limit`` chunks of ``tenant_id`` most similar to ``query``, closest first.

        A query that normalizes to fewer than ``MIN_CONTENT_LENGTH`` characters
        returns an empty list without calling the embedding service.
        """
        _check_limit(limit)
        embedding = await self._embed_query(tenant_id, query)
        if embedding is None:
            return []

        nearest = await self.store.nearest(tenant_id, embedding, limit, db)
        logger.debug(f"Retrieved {len(nearest)} chunks", extra={"tenant_id": tenant_id.lower()})
        return [item for item, _ in nearest]

    async def retrieve_with_score(
        self,
        tenant_id: str,
        query: str,
        limit: int,
        threshold_score: float,
        db: AsyncSession,
    ) -> List[ScoredChunk]:
        """Like ``retrieve`` but with scores, keeping only hits scoring at least ``threshold_score``.

        The threshold filters the top ``limit`` results, so fewer than
        ``limit`` results may come back even when more chunks would qualify.
        """
        _check_limit(limit)
        if not 0.0 <= threshold_score <= 1.0:
            raise ValidationError(f"threshold_score must be within [0, 1], got {threshold_score}")
        embedding = await self._embed_query(tenant_id, query)
        if embedding is None:
            return []

        tenant = tenant_id.lower()
        nearest = await self.store.nearest(tenant, embedding, limit, db)

        scored = [
            ScoredChunk(chunk=item, score=similarity_score(distance), tenant_id=tenant) for item, distance in nearest
        ]
        return [hit for hit in scored if hit.score >= threshold_score]

    async def _embed_query(self, tenant_id: str, query: Optional[str]) -> Optional[List[float]]:
        cleaned = normalize(query)
        if len(cleaned) < self.settings.MIN_CONTENT_LENGTH:
            logger.warning(f"Query too short for search: {len(cleaned)} characters", extra={"tenant_id": tenant_id})
            return None
        return await self.embedding_client.embed(cleaned)

    async def remove(self, source_id: str, db: AsyncSession) -> int:
        """Delete every chunk of ``source_id``. Removing an unknown source returns 0."""
        deleted = await self.store.delete_by_source_id(source_id, db)
        logger.info(f"Removed {deleted} chunks for source {source_id}", extra={"source_id": source_id})
        return deleted

    async def has_source(self, source_id: str, source_type: SourceType, db: AsyncSession) -> bool:
        return await self.store.exists(db, source_id=source_id, source_type=source_type)

    async def has_source_type(self, source_type: SourceType, db: AsyncSession) -> bool:
        return await self.store.exists(db, source_type=source_type)

    async def count_source_chunks(self, source_id: str, db: AsyncSession) -> int:
        return await self.store.count(source_id, db)
