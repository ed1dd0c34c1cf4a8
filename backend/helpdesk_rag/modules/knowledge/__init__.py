"""Knowledge base: chunk storage, ingestion and retrieval."""

from .schemas import (
    DocumentMetadata,
    IngestResult,
    IngestStatus,
    KnowledgeChunkCreate,
    KnowledgeChunkPublic,
    KnowledgeChunkRead,
    ScoredChunk,
    SourceType,
    TicketMetadata,
)
from .services import KnowledgeService, similarity_score
from .store import KnowledgeChunkStore

__all__ = [
    "DocumentMetadata",
    "IngestResult",
    "IngestStatus",
    "KnowledgeChunkCreate",
    "KnowledgeChunkPublic",
    "KnowledgeChunkRead",
    "KnowledgeChunkStore",
    "KnowledgeService",
    "ScoredChunk",
    "SourceType",
    "TicketMetadata",
    "similarity_score",
]
