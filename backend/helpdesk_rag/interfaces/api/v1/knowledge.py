"""Knowledge base API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ....infrastructure.embedding import EmbeddingClient
from ....modules.knowledge.schemas import (
    EmbeddingInfo,
    IngestRequest,
    IngestResult,
    KnowledgeChunkPublic,
    RemoveResponse,
    ScoredChunkPublic,
    ScoredSearchRequest,
    SearchRequest,
)
from ....modules.knowledge.services import KnowledgeService
from ..dependencies import DbSession, get_embedding_client_dependency, get_knowledge_service

router = APIRouter(prefix="/knowledge", tags=["Knowledge"])


@router.post(
    "/ingest",
    status_code=status.HTTP_201_CREATED,
    summary="Ingest Source",
    description="""
    Normalizes, chunks and embeds the content of one ticket or document and
    replaces every chunk previously stored for the same `source_id`.

    Content whose normalized length falls outside the configured bounds is
    skipped: the response status is 200 with `status: SKIPPED` and nothing
    is stored or removed.
    """,
    responses={
        201: {"description": "Source indexed"},
        200: {"description": "Source skipped by validation"},
        503: {"description": "Embedding service or vector store unavailable"},
    },
)
async def ingest_source(
    request: IngestRequest,
    response: Response,
    db: DbSession,
    service: KnowledgeService = Depends(get_knowledge_service),
) -> IngestResult:
    """Index one source."""
    result = await service.ingest(
        tenant_id=request.tenant_id,
        source_type=request.source_type,
        source_id=request.source_id,
        title=request.title,
        raw_content=request.content,
        metadata=request.metadata,
        db=db,
    )
    if not result.stored:
        response.status_code = status.HTTP_200_OK
    return result


@router.post(
    "/search",
    summary="Search Knowledge Base",
    description="""
    Returns up to `limit` chunks of the tenant, most similar first. Queries
    shorter than the minimum content length return an empty list.
    """,
    responses={503: {"description": "Embedding service or vector store unavailable"}},
)
async def search(
    request: SearchRequest,
    db: DbSession,
    service: KnowledgeService = Depends(get_knowledge_service),
) -> List[KnowledgeChunkPublic]:
    """Similarity search without scores."""
    chunks = await service.retrieve(request.tenant_id, request.query, request.limit, db)
    return [item.public_view() for item in chunks]


@router.post(
    "/search/scored",
    summary="Search Knowledge Base With Scores",
    description="""
    Like `/search`, with a similarity score in [0, 1] per hit. Hits scoring
    below `threshold` are dropped from the top `limit`, so fewer than
    `limit` results may be returned.
    """,
    responses={503: {"description": "Embedding service or vector store unavailable"}},
)
async def search_with_scores(
    request: ScoredSearchRequest,
    db: DbSession,
    service: KnowledgeService = Depends(get_knowledge_service),
) -> List[ScoredChunkPublic]:
    """Similarity search with scores."""
    hits = await service.retrieve_with_score(request.tenant_id, request.query, request.limit, request.threshold, db)
    return [hit.public_view() for hit in hits]


@router.delete(
    "/sources/{source_id}",
    summary="Remove Source",
    description="Deletes every chunk stored for `source_id`. Removing an unknown source deletes nothing.",
)
async def remove_source(
    source_id: str,
    db: DbSession,
    service: KnowledgeService = Depends(get_knowledge_service),
) -> RemoveResponse:
    deleted = await service.remove(source_id, db)
    return RemoveResponse(source_id=source_id, deleted=deleted)


@router.get(
    "/embedding/info",
    summary="Get Embedding Model Information",
    description="Returns the configured embedding model name, vector dimension and service URL.",
)
async def get_embedding_info(client: EmbeddingClient = Depends(get_embedding_client_dependency)) -> EmbeddingInfo:
    return EmbeddingInfo(**client.info())
