"""Pydantic schemas for knowledge chunks, ingestion results and search requests."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union
from uuid import UUID

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceType(str, Enum):
    """Kind of source a chunk was cut from."""

    TICKET = "TICKET"
    DOCUMENT = "DOCUMENT"


class TicketMetadata(BaseModel):
    """Metadata carried by chunks of a resolved helpdesk ticket."""

    model_config = ConfigDict(extra="allow")

    project_key: Optional[str] = None
    request_type: Optional[str] = "General"
    priority: Optional[str] = None
    status: Optional[str] = None
    assignee: Optional[str] = None


class DocumentMetadata(BaseModel):
    """Metadata carried by chunks of a knowledge-base page."""

    model_config = ConfigDict(extra="allow")

    space_id: Optional[str] = None
    author_id: Optional[str] = None
    created_at: Optional[str] = None
    web_url: Optional[str] = None


SourceMetadata = Union[TicketMetadata, DocumentMetadata, Dict[str, Any]]


def metadata_to_dict(metadata: Optional[SourceMetadata]) -> Dict[str, Any]:
    """Serialize typed or plain metadata into the JSON map stored with each chunk."""
    if metadata is None:
        return {}
    if isinstance(metadata, BaseModel):
        return metadata.model_dump(exclude_none=True)
    return dict(metadata)


class KnowledgeChunkCreate(BaseModel):
    """Immutable chunk value built by the engine for persistence."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    source_type: SourceType
    source_id: str
    source_title: Optional[str] = None
    content: Annotated[str, Field(min_length=1)]
    embedding: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tenant_id")
    @classmethod
    def lowercase_tenant(cls, v: str) -> str:
        return v.lower()


class KnowledgeChunkPublic(BaseModel):
    """Chunk as exposed to callers, without its embedding."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    tenant_id: str
    source_type: SourceType
    source_id: str
    source_title: Optional[str] = None
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class KnowledgeChunkRead(KnowledgeChunkPublic):
    """Chunk as read back from the store, including its embedding."""

    embedding: List[float]

    @field_validator("embedding", mode="before")
    @classmethod
    def coerce_vector(cls, v: Any) -> List[float]:
        # pgvector hands vectors back as numpy arrays
        if isinstance(v, np.ndarray):
            return v.astype(float).tolist()
        return v

    def public_view(self) -> KnowledgeChunkPublic:
        """Return a copy of this chunk without the embedding."""
        return KnowledgeChunkPublic(**self.model_dump(exclude={"embedding"}))


class ScoredChunkPublic(BaseModel):
    """Search hit with its similarity score, without the embedding."""

    model_config = ConfigDict(frozen=True)

    chunk: KnowledgeChunkPublic
    score: float
    tenant_id: str


class ScoredChunk(BaseModel):
    """A chunk paired with its similarity score (``1 - cosine distance``, clamped to [0, 1])."""

    model_config = ConfigDict(frozen=True)

    chunk: KnowledgeChunkRead
    score: Annotated[float, Field(ge=0.0, le=1.0)]
    tenant_id: str

    def public_view(self) -> ScoredChunkPublic:
        return ScoredChunkPublic(chunk=self.chunk.public_view(), score=self.score, tenant_id=self.tenant_id)


class IngestStatus(str, Enum):
    STORED = "STORED"
    SKIPPED = "SKIPPED"


class IngestResult(BaseModel):
    """Outcome of one ingest call.

    ``SKIPPED`` means the content failed validation and nothing was stored
    or removed; ``reason`` says why.
    """

    model_config = ConfigDict(frozen=True)

    status: IngestStatus
    source_id: str
    chunk_count: int = 0
    reason: Optional[str] = None

    @property
    def stored(self) -> bool:
        return self.status == IngestStatus.STORED


class IngestRequest(BaseModel):
    """Schema for ingesting one source over HTTP."""

    tenant_id: Annotated[str, Field(min_length=1, max_length=100, description="Tenant the source belongs to")]
    source_type: SourceType
    source_id: Annotated[str, Field(min_length=1, max_length=255, description="External identifier of the source")]
    title: Optional[Annotated[str, Field(max_length=1000)]] = None
    content: str = Field(description="Raw content; normalized before chunking")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional source metadata")


class SearchRequest(BaseModel):
    """Schema for a similarity search."""

    tenant_id: Annotated[str, Field(min_length=1, max_length=100)]
    query: str
    limit: Annotated[int, Field(ge=1, le=100, description="Maximum number of results")] = 5


class ScoredSearchRequest(SearchRequest):
    """Schema for a similarity search with a minimum score."""

    threshold: Annotated[float, Field(ge=0.0, le=1.0, description="Minimum similarity score")] = 0.0


class RemoveResponse(BaseModel):
    source_id: str
    deleted: int


class EmbeddingInfo(BaseModel):
    model_name: str
    dimension: int
    api_url: str
