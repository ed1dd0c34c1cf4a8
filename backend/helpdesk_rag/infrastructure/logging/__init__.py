"""Centralized logging infrastructure.

Usage:
    ```python
    from helpdesk_rag.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ingest finished", extra={"source_id": "HELP-42"})
    ```
"""

from .config import (
    configure_testing_logging,
    generate_correlation_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
    setup_logging_configuration,
)
from .factory import configure_logging, get_logger

__all__ = [
    "get_logger",
    "configure_logging",
    "configure_testing_logging",
    "setup_logging_configuration",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "reset_correlation_id",
]
