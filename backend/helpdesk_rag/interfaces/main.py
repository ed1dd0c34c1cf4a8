from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from ..infrastructure.app_factory import create_application
from ..infrastructure.config.settings import get_settings
from ..infrastructure.logging import (
    configure_logging,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from ..interfaces.api import router as api_router

settings = get_settings()
configure_logging()

CORRELATION_HEADER = "X-Request-ID"


app = create_application(
    router=api_router,
    settings=settings,
    title="Helpdesk Knowledge API",
    summary="Retrieval-augmented knowledge base for helpdesk tickets and documentation",
    description="""
    # Helpdesk Knowledge API

    Indexes resolved tickets and knowledge-base pages and answers semantic
    similarity queries over them, one tenant at a time.

    ## Features

    - Text normalization and sentence-aware chunking
    - Embeddings from a remote embedding service
    - pgvector cosine similarity search with optional score threshold
    - Atomic re-indexing per source
    """,
    version="0.1.0",
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Tag every log record of a request with its correlation id."""
    correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
    token = set_correlation_id(correlation_id)
    try:
        response = await call_next(request)
    finally:
        reset_correlation_id(token)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response
