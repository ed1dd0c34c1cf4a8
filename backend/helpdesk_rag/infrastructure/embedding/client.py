"""HTTP client for the remote text-embedding service."""

import asyncio
from functools import lru_cache
from typing import Any, List, Optional

import httpx
import numpy as np
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ...modules.common.exceptions import EmbeddingError
from ..config.settings import get_settings
from ..logging import get_logger

logger = get_logger(__name__)


class EmbeddingResponse(BaseModel):
    """One embedding as returned by the service."""

    embedding: List[float] = Field(default_factory=list)
    model: Optional[str] = None
    dimensions: Optional[int] = None


_batch_adapter = TypeAdapter(List[EmbeddingResponse])


class EmbeddingClient:
    """Client for an embedding model served over HTTP (E5-base, 768 dimensions by default).

    Single texts are posted as ``{"text": ...}`` and answered with
    ``{"embedding": [...], "model": ..., "dimensions": ...}``; batches are
    posted as ``{"texts": [...]}`` and answered with a list of such objects.

    Every failure mode (empty input, timeout, transport error, non-2xx
    status, malformed body, wrong vector length) is raised as
    ``EmbeddingError``. A batch either succeeds for every text or fails as a
    whole.

    Features:
    - Lazily created, reusable ``httpx.AsyncClient``
    - Bounded request timeout from settings
    - Dimension check against the configured vector column size
    """

    def __init__(
        self,
        api_url: str,
        dimension: int = 768,
        timeout: float = 30.0,
        model_name: str = "e5-base",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_url: Full URL of the embed endpoint
            dimension: Expected vector length
            timeout: Per-request timeout in seconds (connect and read)
            model_name: Name reported by ``info()``
            transport: Optional httpx transport, used by tests
        """
        self.api_url = api_url
        self.dimension = dimension
        self.timeout = timeout
        self.model_name = model_name
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            async with self._client_lock:
                if self._http_client is None:
                    self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if one was created."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length ``dimension``

        Raises:
            EmbeddingError: On empty input or any service failure
        """
        if text is None or not text.strip():
            raise EmbeddingError("Input text cannot be empty")

        body = await self._post({"text": text})

        try:
            data = EmbeddingResponse.model_validate(body)
        except PydanticValidationError as e:
            raise EmbeddingError(f"Malformed response from embedding API: {e}") from e

        return self._check_vector(data.embedding)

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts with one request.

        Args:
            texts: Texts to embed, all non-empty

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingError: On empty input or any service failure; no
                partial result is returned
        """
        if not texts:
            raise EmbeddingError("Input texts list cannot be empty")
        if any(text is None or not text.strip() for text in texts):
            raise EmbeddingError("All input texts must be non-empty")

        body = await self._post({"texts": texts})

        try:
            items = _batch_adapter.validate_python(body)
        except PydanticValidationError as e:
            raise EmbeddingError(f"Malformed batch response from embedding API: {e}") from e

        if len(items) != len(texts):
            raise EmbeddingError(f"Embedding API returned {len(items)} embeddings for {len(texts)} texts")

        return [self._check_vector(item.embedding) for item in items]

    async def _post(self, payload: dict[str, Any]) -> Any:
        client = await self._get_client()

        try:
            response = await client.post(self.api_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Embedding API timed out after {self.timeout}s", extra={"api_url": self.api_url})
            raise EmbeddingError(f"Embedding API timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Error calling embedding API: {e}", extra={"api_url": self.api_url})
            raise EmbeddingError(f"Failed to get embedding from API: {e}") from e

        if not response.is_success:
            logger.error(
                f"Embedding API failed with status {response.status_code}: {response.text}",
                extra={"api_url": self.api_url},
            )
            raise EmbeddingError(f"Embedding API returned status: {response.status_code}")

        if not response.content:
            raise EmbeddingError("Empty response from embedding API")

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingError("Embedding API returned a non-JSON body") from e

    def _check_vector(self, embedding: List[float]) -> List[float]:
        if not embedding:
            raise EmbeddingError("No embeddings returned from API")
        if len(embedding) != self.dimension:
            raise EmbeddingError(f"Expected embedding dimension {self.dimension}, got {len(embedding)}")

        vector = np.asarray(embedding, dtype=np.float64)
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("Embedding contains non-finite values")

        return vector.tolist()

    @property
    def embedding_dimension(self) -> int:
        return self.dimension

    def info(self) -> dict[str, Any]:
        """Describe the configured embedding model."""
        return {"model_name": self.model_name, "dimension": self.dimension, "api_url": self.api_url}


@lru_cache()
def get_embedding_client() -> EmbeddingClient:
    """Get the process-wide embedding client built from settings."""
    settings = get_settings()
    return EmbeddingClient(
        api_url=settings.EMBEDDING_API_URL,
        dimension=settings.EMBEDDING_DIMENSION,
        timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
        model_name=settings.EMBEDDING_MODEL_NAME,
    )
