"""FastAPI dependencies for use in API endpoints."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.database import async_session
from ...infrastructure.embedding import EmbeddingClient, get_embedding_client
from ...modules.knowledge.services import KnowledgeService

DbSession = Annotated[AsyncSession, Depends(async_session)]


def get_knowledge_service() -> KnowledgeService:
    """Dependency for providing a KnowledgeService instance."""
    return KnowledgeService()


def get_embedding_client_dependency() -> EmbeddingClient:
    """Dependency for providing the shared EmbeddingClient."""
    return get_embedding_client()
