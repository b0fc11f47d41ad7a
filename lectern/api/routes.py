"""FastAPI route definitions for the Lectern API.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``lectern.main._build_all``) via ``Depends`` with the ``Annotated``
pattern.

Endpoint                                   Method  Description
---------------------------------------------------------------------------
/api/v1/health                             GET     Health check + providers
/api/v1/documents                          POST    Create a document record
/api/v1/documents/{id}                     GET     Fetch a document
/api/v1/documents/{id}                     DELETE  Delete document + derived data
/api/v1/documents/{id}/parse               POST    Upload PDF, stream ingest (SSE)
/api/v1/documents/{id}/outline             GET     Outline JSON or Markdown
/api/v1/quota                              GET     Caller's quota status
/api/v1/limits                             GET     System-wide limits
/api/v1/courses                            GET     Cached course list
/api/v1/courses                            POST    Create a course
/api/v1/courses/{id}/outline               GET     Stored course outline
/api/v1/courses/{id}/outline/regenerate    POST    Rebuild course outline
/api/v1/universities                       GET     Cached university list
/api/v1/universities                       POST    Create a university
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import Annotated, Any

import structlog
from fastapi import (
    APIRouter,
    Depends,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.responses import PlainTextResponse
from sse_starlette.sse import EventSourceResponse

from lectern import __version__
from lectern.api.schemas import (
    CreateCourseRequest,
    CreateDocumentRequest,
    CreateUniversityRequest,
    ErrorResponse,
    HealthResponse,
)
from lectern.config.settings import Settings
from lectern.models.events import PipelineEvent
from lectern.pipeline.orchestrator import PDF_MAGIC, IngestionOrchestrator
from lectern.services.batch_persister import format_outline_markdown
from lectern.services.catalog_service import CatalogService
from lectern.services.course_outline import CourseOutlineAggregator
from lectern.services.document_service import DocumentService
from lectern.services.quota_gate import QuotaGate
from lectern.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_ALLOWED_CONTENT_TYPES = frozenset({"application/pdf", "application/x-pdf"})

# Uploads are read in 64 KB increments so oversized files are rejected
# before the whole body is buffered.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------


def _get_orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def _get_quota_gate(request: Request) -> QuotaGate:
    return request.app.state.quota_gate


def _get_course_aggregator(request: Request) -> CourseOutlineAggregator:
    return request.app.state.course_aggregator


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


OrchestratorDep = Annotated[IngestionOrchestrator, Depends(_get_orchestrator)]
DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
CatalogServiceDep = Annotated[CatalogService, Depends(_get_catalog_service)]
QuotaGateDep = Annotated[QuotaGate, Depends(_get_quota_gate)]
CourseAggregatorDep = Annotated[CourseOutlineAggregator, Depends(_get_course_aggregator)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]
UserIdHeader = Annotated[str, Header(alias="X-User-Id", min_length=1)]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    status = "healthy" if providers.get("llm") and providers.get("embedding") else "degraded"
    return HealthResponse(status=status, version=__version__, providers=providers)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post("/documents", status_code=201, summary="Create a document record")
async def create_document(
    body: CreateDocumentRequest,
    user_id: UserIdHeader,
    documents: DocumentServiceDep,
) -> dict[str, Any]:
    document = await documents.create_document(
        owner_id=user_id,
        name=body.name,
        course_id=body.course_id,
        doc_type=body.type,
    )
    return document.to_wire()


@router.get(
    "/documents/{document_id}",
    responses={404: {"model": ErrorResponse}},
    summary="Fetch a document record",
)
async def get_document(document_id: str, documents: DocumentServiceDep) -> dict[str, Any]:
    document = await documents.get_document(document_id)
    return document.to_wire()


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document with its chunks and outline",
)
async def delete_document(document_id: str, documents: DocumentServiceDep) -> Response:
    await documents.delete_document(document_id)
    return Response(status_code=204)


@router.post(
    "/documents/{document_id}/parse",
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a lecture or exam PDF and stream ingestion progress as Server-Sent Events",
)
async def parse_document(
    document_id: str,
    file: UploadFile,
    orchestrator: OrchestratorDep,
    settings: SettingsDep,
    has_answers: Annotated[bool, Form(alias="hasAnswers")] = False,
    user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> EventSourceResponse:
    content_type = file.content_type or ""
    if content_type and content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {content_type}. Only PDF uploads are accepted.",
        )

    max_bytes = settings.max_file_size_mb * 1024 * 1024
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {settings.max_file_size_mb} MB.",
            )
        chunks.append(chunk)
    file_bytes = b"".join(chunks)

    if not file_bytes.startswith(PDF_MAGIC):
        raise HTTPException(status_code=415, detail="File content is not a PDF.")

    _logger.info("parse_requested", document_id=document_id, bytes=total_size)
    events = orchestrator.ingest(
        document_id, file_bytes, user_id=user_id, has_answers=has_answers
    )
    return EventSourceResponse(_to_sse(events))


@router.get(
    "/documents/{document_id}/outline",
    responses={404: {"model": ErrorResponse}},
    summary="Fetch a document outline as JSON or Markdown",
)
async def get_document_outline(
    document_id: str,
    documents: DocumentServiceDep,
    format: Annotated[str, Query(pattern="^(json|markdown)$")] = "json",  # noqa: A002
) -> Any:
    document = await documents.get_document(document_id)
    outline = await documents.get_outline(document_id)
    if outline is None:
        raise HTTPException(status_code=404, detail=f"No outline for document {document_id}")
    if format == "markdown":
        return PlainTextResponse(
            format_outline_markdown(outline, document.name or None),
            media_type="text/markdown",
        )
    return outline.to_wire()


async def _to_sse(events: AsyncIterator[PipelineEvent]) -> AsyncIterator[dict[str, str]]:
    async with contextlib.aclosing(events) as stream:
        async for event in stream:
            yield event.to_sse()


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------


@router.get("/quota", summary="Quota status of the calling user")
async def get_quota_status(user_id: UserIdHeader, quota: QuotaGateDep) -> dict[str, Any]:
    status = await quota.check_status(user_id)
    return status.to_wire()


@router.get("/limits", summary="System-wide access limits")
async def get_system_limits(quota: QuotaGateDep) -> dict[str, Any]:
    return quota.get_system_limits().to_wire()


# ---------------------------------------------------------------------------
# Courses & universities
# ---------------------------------------------------------------------------


@router.get("/courses", summary="List courses")
async def list_courses(catalog: CatalogServiceDep) -> list[dict[str, Any]]:
    return [c.to_wire() for c in await catalog.get_all_courses()]


@router.post("/courses", status_code=201, summary="Create a course")
async def create_course(body: CreateCourseRequest, catalog: CatalogServiceDep) -> dict[str, Any]:
    course = await catalog.create_course(body.university_id, body.code, body.name)
    return course.to_wire()


@router.get("/courses/{course_id}/outline", summary="Fetch the stored course outline")
async def get_course_outline(
    course_id: str, aggregator: CourseAggregatorDep
) -> dict[str, Any] | None:
    outline = await aggregator.get(course_id)
    return outline.to_wire() if outline is not None else None


@router.post(
    "/courses/{course_id}/outline/regenerate",
    summary="Rebuild the course outline from its document outlines",
)
async def regenerate_course_outline(
    course_id: str, orchestrator: OrchestratorDep
) -> dict[str, Any] | None:
    outline = await orchestrator.regenerate_course_outline(course_id)
    return outline.to_wire() if outline is not None else None


@router.get("/universities", summary="List universities")
async def list_universities(catalog: CatalogServiceDep) -> list[dict[str, Any]]:
    return [u.to_wire() for u in await catalog.get_all_universities()]


@router.post("/universities", status_code=201, summary="Create a university")
async def create_university(
    body: CreateUniversityRequest, catalog: CatalogServiceDep
) -> dict[str, Any]:
    university = await catalog.create_university(body.name, body.short_name)
    return university.to_wire()
