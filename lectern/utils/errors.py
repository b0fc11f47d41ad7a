"""Custom exception hierarchy for Lectern.

All application exceptions inherit from :class:`LecternError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "sqlite", "redis") caused the failure.

The hierarchy is organized by pipeline stage:

    LecternError  (base -- catch-all for any lectern error)
    +-- TextExtractionError      (PDF bytes to page text)
    +-- ExtractionError          (structured section / knowledge point parsing)
    +-- LLMError                 (any LLM API call failure)
    +-- RAGError                 (embedding failure)
    +-- StorageError             (durable store read / write failure)
    +-- QuotaExceededError       (daily usage or rate limit exhausted)
    +-- QuotaBackendError        (counter store / rate limiter unreachable)
    +-- DocumentNotFoundError    (unknown document id)
    +-- PipelineError            (orchestration / stage transitions)
    +-- ConfigurationError       (startup / missing config)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- ProviderUnavailableError (external service down / unreachable)
"""

from __future__ import annotations


class LecternError(Exception):
    """Base exception for all Lectern errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion stage errors
# ---------------------------------------------------------------------------

class TextExtractionError(LecternError):
    """Raised when a document cannot be converted into page text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(LecternError):
    """Raised when structured knowledge extraction fails outright."""

    def __init__(
        self,
        message: str = "Structured extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(LecternError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(LecternError):
    """Raised when generating embeddings fails."""

    def __init__(
        self,
        message: str = "Embedding operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(LecternError):
    """Raised when a durable store read or write fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(LecternError):
    """Raised when a document id does not exist."""

    def __init__(
        self,
        document_id: str,
        provider_name: str | None = None,
    ) -> None:
        self._document_id = document_id
        super().__init__(
            message=f"Document not found: {document_id}",
            provider_name=provider_name,
        )

    @property
    def document_id(self) -> str:
        return self._document_id


# ---------------------------------------------------------------------------
# Quota errors
# ---------------------------------------------------------------------------

class QuotaExceededError(LecternError):
    """Raised when a user has used up their daily LLM allowance.

    Carries ``usage`` and ``limit`` so the HTTP boundary can tell the
    client how far over they are.
    """

    def __init__(self, usage: int, limit: int) -> None:
        self._usage = usage
        self._limit = limit
        super().__init__(message=f"Usage {usage}/{limit} exceeded")

    @property
    def usage(self) -> int:
        return self._usage

    @property
    def limit(self) -> int:
        return self._limit


class QuotaBackendError(LecternError):
    """Raised by counter stores and rate limiters when the backend is unreachable."""

    def __init__(
        self,
        message: str = "Quota backend unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(LecternError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(LecternError):
    """Raised when an upstream API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(LecternError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(LecternError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
