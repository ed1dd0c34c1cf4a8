"""Text normalization and chunking."""

from .chunking import chunk
from .normalizer import is_valid_for_embedding, normalize, truncate

__all__ = ["chunk", "normalize", "is_valid_for_embedding", "truncate"]
