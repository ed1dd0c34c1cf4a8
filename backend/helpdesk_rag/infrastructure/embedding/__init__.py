"""Embedding infrastructure for text-to-vector conversion."""

from .client import EmbeddingClient, EmbeddingResponse, get_embedding_client

__all__ = ["EmbeddingClient", "EmbeddingResponse", "get_embedding_client"]
