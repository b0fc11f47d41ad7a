"""University and course reference data (cached list-style data)."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from lectern.models.base import DomainModel, utc_now


class University(DomainModel):
    id: str
    name: str
    short_name: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class Course(DomainModel):
    id: str
    university_id: str
    code: str
    name: str
    created_at: datetime = Field(default_factory=utc_now)
