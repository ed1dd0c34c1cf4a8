"""Common constants used across the application."""

from typing import Callable, Dict, Type

from fastapi import HTTPException, status

from .exceptions import (
    DomainError,
    EmbeddingError,
    StoreError,
    ValidationError,
)

EXCEPTION_MAPPING: Dict[Type[DomainError], Callable[[str], HTTPException]] = {
    ValidationError: lambda message: HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message),
    EmbeddingError: lambda message: HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message),
    StoreError: lambda message: HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message),
}
