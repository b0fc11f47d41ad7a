"""Lectern application entry point and composition root.

``_build_all`` constructs every provider and service exactly once and
returns them as a flat dict that the lifespan handler copies onto
``app.state``; routes resolve them from there with ``Depends``.  Nothing
else in the package builds its own collaborators.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import redis.asyncio as aioredis
import structlog
import uvicorn
from fastapi import FastAPI

from lectern import __version__
from lectern.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from lectern.api.routes import router as api_router
from lectern.config.loader import load_config
from lectern.config.settings import Settings, parse_window
from lectern.interfaces.llm_provider import ILLMProvider
from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.pipeline.orchestrator import IngestionOrchestrator
from lectern.providers.cache.memory_cache import MemoryCacheProvider
from lectern.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from lectern.providers.llm.anthropic_provider import AnthropicLLMProvider
from lectern.providers.llm.openai_provider import OpenAILLMProvider
from lectern.providers.quota.memory_counter_store import (
    MemoryCounterStore,
    MemorySlidingWindowLimiter,
)
from lectern.providers.quota.redis_counter_store import (
    RedisCounterStore,
    RedisSlidingWindowLimiter,
)
from lectern.providers.storage import (
    SQLiteCatalogStore,
    SQLiteChunkStore,
    SQLiteCourseOutlineStore,
    SQLiteDatabase,
    SQLiteDocumentStore,
    SQLiteOutlineStore,
    SQLiteProfileStore,
)
from lectern.providers.text.pymupdf_extractor import PyMuPDFTextExtractor
from lectern.services.batch_persister import BatchPersister
from lectern.services.cache_layer import CacheLayer
from lectern.services.catalog_service import CatalogService
from lectern.services.course_outline import CourseOutlineAggregator
from lectern.services.document_service import DocumentService
from lectern.services.quota_gate import QuotaGate
from lectern.services.structured_extractor import StructuredExtractor
from lectern.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings, http_client: httpx.AsyncClient) -> ILLMProvider:
    """Pick the LLM provider: OpenAI(-compatible) first, then Anthropic.

    Falls back to an unconfigured OpenAI provider, which reports itself
    unavailable and fails at call time with ``LLMError``.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings, http_client=http_client)
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings, http_client=http_client)
    _logger.warning("no_llm_provider_configured")
    return OpenAILLMProvider(settings=app_settings, http_client=http_client)


def _build_quota_backend(
    app_settings: Settings,
) -> tuple[ICounterStore, IRateLimiter, IRateLimiter, aioredis.Redis | None]:
    free_window = parse_window(app_settings.rate_limit_llm_free_window)
    pro_window = parse_window(app_settings.rate_limit_llm_pro_window)

    if app_settings.redis_url:
        client = aioredis.from_url(app_settings.redis_url, decode_responses=True)
        return (
            RedisCounterStore(client),
            RedisSlidingWindowLimiter(
                client,
                app_settings.rate_limit_llm_free_requests,
                free_window,
                prefix="ratelimit:llm:free",
            ),
            RedisSlidingWindowLimiter(
                client,
                app_settings.rate_limit_llm_pro_requests,
                pro_window,
                prefix="ratelimit:llm:pro",
            ),
            client,
        )

    return (
        MemoryCounterStore(),
        MemorySlidingWindowLimiter(app_settings.rate_limit_llm_free_requests, free_window),
        MemorySlidingWindowLimiter(app_settings.rate_limit_llm_pro_requests, pro_window),
        None,
    )


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    config = config if config is not None else load_config(settings=app_settings)
    pipeline_cfg = config["pipeline"]

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(app_settings.llm_timeout_seconds, connect=5.0))
    database = SQLiteDatabase(app_settings.database_path)

    # -- Providers --
    llm = _build_llm_provider(app_settings, http_client)
    embedder = OpenAIEmbeddingProvider(settings=app_settings, http_client=http_client)
    text_extractor = PyMuPDFTextExtractor()
    cache = MemoryCacheProvider(max_size=config["cache"]["max_size"])
    counter_store, limiter_free, limiter_pro, redis_client = _build_quota_backend(app_settings)

    # -- Stores --
    document_store = SQLiteDocumentStore(database)
    chunk_store = SQLiteChunkStore(database)
    outline_store = SQLiteOutlineStore(database)
    course_outline_store = SQLiteCourseOutlineStore(database)
    catalog_store = SQLiteCatalogStore(database)
    profile_store = SQLiteProfileStore(database)

    # -- Services --
    cache_layer = CacheLayer(cache)
    course_aggregator = CourseOutlineAggregator(outline_store, course_outline_store, cache_layer)
    quota_gate = QuotaGate(counter_store, limiter_free, limiter_pro, profile_store, app_settings)
    structured_extractor = StructuredExtractor(llm, max_tokens=config["extraction"]["max_tokens"])
    batch_persister = BatchPersister(
        embedder,
        chunk_store,
        outline_store,
        course_aggregator,
        batch_size=pipeline_cfg["persist_batch_size"],
    )
    orchestrator = IngestionOrchestrator(
        text_extractor,
        structured_extractor,
        quota_gate,
        batch_persister,
        document_store,
        course_aggregator,
        max_file_size_mb=app_settings.max_file_size_mb,
        stream_buffer_size=pipeline_cfg["stream_buffer_size"],
    )
    document_service = DocumentService(document_store, chunk_store, outline_store, course_aggregator)
    catalog_service = CatalogService(
        catalog_store,
        cache_layer,
        courses_ttl=app_settings.cache_ttl_courses,
        universities_ttl=app_settings.cache_ttl_universities,
    )

    provider_registry = {
        "llm": llm.is_available(),
        "llm_provider": llm.get_provider_name(),
        "embedding": embedder.is_available(),
        "text_extractor": text_extractor.get_provider_name(),
        "quota_backend": "redis" if redis_client is not None else "memory",
        "quota_enforced": app_settings.quota_enforced,
    }

    return {
        "settings": app_settings,
        "config": config,
        "http_client": http_client,
        "redis_client": redis_client,
        "database": database,
        "provider_registry": provider_registry,
        "orchestrator": orchestrator,
        "document_service": document_service,
        "catalog_service": catalog_service,
        "quota_gate": quota_gate,
        "course_aggregator": course_aggregator,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    app_settings: Settings = getattr(application.state, "settings", None) or settings
    components = _build_all(app_settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["database"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=app_settings.app_env,
        **components["provider_registry"],
    )

    yield

    await components["http_client"].aclose()
    if components["redis_client"] is not None:
        await components["redis_client"].aclose()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Lectern API",
        version=__version__,
        description=(
            "Upload lecture PDFs, extract sections and knowledge points with an "
            "LLM, and stream progress while chunks are embedded and stored."
        ),
        lifespan=_lifespan,
    )
    if app_settings is not None:
        application.state.settings = app_settings

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "lectern.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
