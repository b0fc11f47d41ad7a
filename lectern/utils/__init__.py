"""Utility modules for Lectern.

- **errors** -- Domain exception hierarchy rooted at LecternError; each
  ingestion stage raises its own subclass so the orchestrator can map
  failures to event codes without broad string matching.
- **logging** -- structlog setup with console output in development and
  JSON in production.
"""

from lectern.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    ExtractionError,
    LecternError,
    LLMError,
    PipelineError,
    ProviderUnavailableError,
    QuotaBackendError,
    QuotaExceededError,
    RAGError,
    RateLimitError,
    StorageError,
    TextExtractionError,
)
from lectern.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "ExtractionError",
    "LLMError",
    "LecternError",
    "PipelineError",
    "ProviderUnavailableError",
    "QuotaBackendError",
    "QuotaExceededError",
    "RAGError",
    "RateLimitError",
    "StorageError",
    "TextExtractionError",
    "configure_logging",
    "get_logger",
]
