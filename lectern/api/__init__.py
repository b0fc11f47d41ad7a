"""Lectern API layer: routes, schemas and middleware."""

from lectern.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from lectern.api.routes import router
from lectern.api.schemas import (
    CreateCourseRequest,
    CreateDocumentRequest,
    CreateUniversityRequest,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "CreateCourseRequest",
    "CreateDocumentRequest",
    "CreateUniversityRequest",
    "ErrorResponse",
    "HealthResponse",
]
