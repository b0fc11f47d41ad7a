"""Shared pydantic configuration for Lectern domain models.

Domain models are frozen: a change produces a new instance via
``model_copy(update={...})``.  Attributes are snake_case in Python and
camelCase on the wire (``source_pages`` <-> ``sourcePages``) so that the
same models validate model output and serialize API responses.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class DomainModel(BaseModel):
    """Frozen base model with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict:
        """Serialize with camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True)
