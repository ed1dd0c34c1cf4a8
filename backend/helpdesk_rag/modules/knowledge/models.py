"""SQLAlchemy models for knowledge chunks."""

from typing import Any, Dict, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ...infrastructure.config.settings import settings
from ...infrastructure.database.models import CreatedAtMixin, UUIDMixin
from ...infrastructure.database.session import Base


class KnowledgeChunk(Base, UUIDMixin, CreatedAtMixin):
    """One embedded piece of a ticket or document.

    Rows sharing a ``source_id`` form the indexed representation of one
    source and are only ever replaced as a set. ``tenant_id`` is stored
    lowercased.
    """

    __tablename__ = "knowledge_chunks"
    __table_args__ = (
        Index("idx_chunks_tenant_id", "tenant_id"),
        Index("idx_chunks_source_id", "source_id"),
        Index("idx_chunks_tenant_source", "tenant_id", "source_type"),
        Index(
            "idx_chunks_embedding",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": settings.VECTOR_INDEX_M, "ef_construction": settings.VECTOR_INDEX_EF_CONSTRUCTION},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(100))
    source_type: Mapped[str] = mapped_column(String(50))
    source_id: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text)
    embedding: Mapped[List[float]] = mapped_column(Vector(settings.EMBEDDING_DIMENSION))
    source_title: Mapped[Optional[str]] = mapped_column(String(1000), default=None)
    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(JSONB, default_factory=dict)
