"""Environment-aware logging configuration.

- Development/local: coloured detailed console output, DEBUG when verbose
- Staging: structured console output, optional rotating file
- Production: JSON console output, noisy third-party loggers quietened
- Testing: ``configure_testing_logging()`` silences everything below ERROR
"""

import contextvars
import logging
import uuid

from ..config.settings import EnvironmentOption, get_settings
from .handlers import (
    create_console_handler,
    create_file_handler,
    create_null_handler,
)

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id")


def setup_logging_configuration() -> None:
    """Configure the root logger from application settings.

    Should be called once during startup; ``get_logger()`` calls it lazily.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if settings.ENVIRONMENT == EnvironmentOption.STAGING:
        handlers = _staging_handlers(settings)
    elif settings.ENVIRONMENT == EnvironmentOption.PRODUCTION:
        handlers = _production_handlers(settings)
    else:
        handlers = _development_handlers(settings)

    if settings.LOG_FILE_ENABLED:
        handlers.append(
            create_file_handler(
                filepath=settings.LOG_FILE_PATH,
                format_type="structured",
                level=logging.DEBUG,
                max_bytes=settings.LOG_FILE_MAX_SIZE,
                backup_count=settings.LOG_FILE_BACKUP_COUNT,
            )
        )

    for handler in handlers:
        if settings.LOG_CORRELATION_ID:
            handler.addFilter(CorrelationIdFilter())
        root_logger.addHandler(handler)

    root_logger.setLevel(settings.LOG_LEVEL_INT)

    if settings.ENVIRONMENT == EnvironmentOption.PRODUCTION:
        _configure_noisy_loggers()


def _development_handlers(settings) -> list[logging.Handler]:
    if not settings.LOG_CONSOLE_ENABLED:
        return []
    console_level = logging.DEBUG if settings.LOG_DEVELOPMENT_VERBOSE else settings.LOG_LEVEL_INT
    return [create_console_handler(format_type="detailed", level=console_level, use_colors=True)]


def _staging_handlers(settings) -> list[logging.Handler]:
    if not settings.LOG_CONSOLE_ENABLED:
        return []
    return [create_console_handler(format_type=settings.LOG_FORMAT, level=settings.LOG_LEVEL_INT, use_colors=False)]


def _production_handlers(settings) -> list[logging.Handler]:
    if not settings.LOG_CONSOLE_ENABLED:
        return []
    console_level = logging.WARNING if settings.LOG_PRODUCTION_OPTIMIZE else settings.LOG_LEVEL_INT
    return [create_console_handler(format_type="json", level=console_level, use_colors=False)]


def _configure_noisy_loggers() -> None:
    """Quieten chatty third-party loggers in production."""
    noisy_loggers = {
        "asyncpg": logging.WARNING,
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "sqlalchemy.engine": logging.WARNING,
        "sqlalchemy.dialects": logging.WARNING,
        "sqlalchemy.pool": logging.WARNING,
    }

    for logger_name, level in noisy_loggers.items():
        logging.getLogger(logger_name).setLevel(level)


def configure_testing_logging() -> None:
    """Configure minimal logging for test runs."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(create_null_handler())
    root_logger.setLevel(logging.ERROR)

    for logger_name in ("sqlalchemy.engine", "asyncpg", "httpx", "testcontainers"):
        logging.getLogger(logger_name).setLevel(logging.ERROR)


def get_configured_logger(name: str) -> logging.Logger:
    """Get a logger that inherits the configured root handlers."""
    return logging.getLogger(name)


class CorrelationIdFilter(logging.Filter):
    """Attach the current correlation ID (from context) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        setattr(record, "correlation_id", get_correlation_id() or "no-correlation")
        return True


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context.

    Returns:
        Token that can be passed to ``reset_correlation_id``.
    """
    return correlation_id_var.set(correlation_id)


def reset_correlation_id(token: contextvars.Token) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    try:
        return correlation_id_var.get()
    except LookupError:
        return None


def generate_correlation_id() -> str:
    return str(uuid.uuid4())
