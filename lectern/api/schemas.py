"""Pydantic request/response schemas for the Lectern API.

Domain models are returned as their camelCase wire form
(``DomainModel.to_wire``); the models here cover request bodies and the
few responses that have no domain model behind them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from lectern.models.document import DocumentType


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    usage: int | None = None
    limit: int | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class CreateDocumentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    course_id: str | None = None
    type: DocumentType = DocumentType.LECTURE


class CreateUniversityRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    short_name: str = Field(default="", max_length=50)


class CreateCourseRequest(BaseModel):
    university_id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
