"""Domain exception classes for business logic errors."""


class DomainError(Exception):
    """Base class for all domain-specific errors."""

    pass


class ValidationError(DomainError):
    """Raised when a caller passes an out-of-range argument, such as a non-positive result limit."""

    pass


class EmbeddingError(DomainError):
    """Raised when the embedding service is unreachable, times out, or returns unusable data.

    Callers should treat it as retryable: an ingest that fails with this error
    has not touched the stored chunks for the source.
    """

    pass


class StoreError(DomainError):
    """Raised when a read or write against the vector store fails."""

    pass
