from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Dict, List, Optional

import anyio
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ..modules.common.utils.error_handler import register_exception_handlers
from .config.settings import (
    DatabaseSettings,
    EnvironmentOption,
    EnvironmentSettings,
    Settings,
    get_settings,
)
from .database.session import create_tables
from .embedding import get_embedding_client
from .logging import get_logger

logger = get_logger(__name__)


async def set_threadpool_tokens(number_of_tokens: int = 100) -> None:
    """Configure the number of threadpool tokens for anyio."""
    limiter = anyio.to_thread.current_default_thread_limiter()
    limiter.total_tokens = number_of_tokens


def lifespan_factory(
    settings: Settings,
    create_tables_on_startup: bool = True,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Factory to create a lifespan async context manager for a FastAPI app.

    Args:
        settings: Application settings
        create_tables_on_startup: Whether to create database tables on startup

    Returns:
        An async context manager for FastAPI's lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await set_threadpool_tokens()

        try:
            if isinstance(settings, DatabaseSettings) and create_tables_on_startup:
                await create_tables()

            logger.info("Application startup complete")
            yield

        finally:
            await get_embedding_client().aclose()
            logger.info("Application shutdown complete")

    return lifespan


def _setting(explicit: Any, settings: Settings, name: str, default: Any) -> Any:
    """Pick an explicit argument, then a settings attribute, then a default."""
    if explicit is not None:
        return explicit
    return getattr(settings, name, default)


def create_application(
    router: APIRouter,
    settings: Optional[Settings] = None,
    lifespan: Optional[Callable[[FastAPI], AbstractAsyncContextManager[None]]] = None,
    create_tables_on_startup: Optional[bool] = None,
    enable_cors: Optional[bool] = None,
    cors_origins: Optional[List[str]] = None,
    enable_docs_in_production: Optional[bool] = None,
    enable_gzip: Optional[bool] = None,
    title: Optional[str] = None,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    version: Optional[str] = None,
    **kwargs: Any,
) -> FastAPI:
    """Create the FastAPI application for the knowledge API.

    Every optional argument falls back to the matching setting
    (``CREATE_TABLES_ON_STARTUP``, ``CORS_ENABLED``, ``CORS_ORIGINS_LIST``,
    ``ENABLE_DOCS_IN_PRODUCTION``, ``GZIP_ENABLED``, ``APP_NAME``,
    ``APP_DESCRIPTION``, ``VERSION``).

    Domain errors raised by route handlers are turned into JSON error
    responses by the handlers from ``register_exception_handlers``.

    Args:
        router: The APIRouter containing the routes for the application
        settings: Application settings (uses get_settings() if None)
        lifespan: Optional lifespan; defaults to ``lifespan_factory(settings)``
        create_tables_on_startup: Whether to create database tables on startup
        enable_cors: Whether to enable CORS middleware
        cors_origins: List of allowed origins for CORS
        enable_docs_in_production: Whether to serve docs in production
        enable_gzip: Whether to enable GZip compression middleware
        title: The title of the API
        summary: A short summary of the API
        description: A detailed description of the API (supports Markdown)
        version: The version of the API
        **kwargs: Additional keyword arguments passed to FastAPI constructor

    Returns:
        A configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    _create_tables_on_startup = _setting(create_tables_on_startup, settings, "CREATE_TABLES_ON_STARTUP", True)
    _enable_cors = _setting(enable_cors, settings, "CORS_ENABLED", True)
    _cors_origins = _setting(cors_origins, settings, "CORS_ORIGINS_LIST", ["*"])
    _enable_docs_in_production = _setting(enable_docs_in_production, settings, "ENABLE_DOCS_IN_PRODUCTION", False)
    _enable_gzip = _setting(enable_gzip, settings, "GZIP_ENABLED", True)

    metadata: Dict[str, Any] = {
        "title": _setting(title, settings, "APP_NAME", "API"),
        "description": _setting(description, settings, "APP_DESCRIPTION", ""),
        "version": _setting(version, settings, "VERSION", "0.1.0"),
        "openapi_prefix": getattr(settings, "OPENAPI_PREFIX", ""),
        "docs_url": getattr(settings, "DOCS_URL", "/docs"),
        "redoc_url": getattr(settings, "REDOC_URL", "/redoc"),
        "openapi_url": getattr(settings, "OPENAPI_URL", "/openapi.json"),
    }
    if summary is not None:
        metadata["summary"] = summary

    kwargs.update(metadata)

    hide_docs = (
        isinstance(settings, EnvironmentSettings)
        and settings.ENVIRONMENT == EnvironmentOption.PRODUCTION
        and not _enable_docs_in_production
    )
    if hide_docs:
        kwargs.update({"docs_url": None, "redoc_url": None, "openapi_url": None})

    if lifespan is None:
        lifespan = lifespan_factory(settings, create_tables_on_startup=_create_tables_on_startup)

    application = FastAPI(lifespan=lifespan, **kwargs)

    application.include_router(router)
    register_exception_handlers(application)

    if _enable_cors:
        methods = getattr(settings, "CORS_ALLOW_METHODS", "*")
        headers = getattr(settings, "CORS_ALLOW_HEADERS", "*")
        application.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=getattr(settings, "CORS_ALLOW_CREDENTIALS", True),
            allow_methods=methods.split(",") if isinstance(methods, str) else methods,
            allow_headers=headers.split(",") if isinstance(headers, str) else headers,
        )

    if _enable_gzip:
        application.add_middleware(GZipMiddleware, minimum_size=getattr(settings, "GZIP_MINIMUM_SIZE", 1000))

    return application
