"""Typed progress events streamed to the caller during ingestion.

Every event carries a literal ``event`` name which doubles as the SSE
event field.  ``to_sse()`` renders the dict shape ``sse-starlette``
expects: ``{"event": "item", "data": "<json>"}``.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import Field

from lectern.models.base import DomainModel
from lectern.models.pipeline import ErrorCode, ParseStage


class PipelineEvent(DomainModel):
    """Base class for everything the progress streamer emits."""

    event: str

    @property
    def is_terminal(self) -> bool:
        return False

    def to_sse(self) -> dict[str, str]:
        payload = self.model_dump(mode="json", by_alias=True, exclude={"event"})
        return {"event": self.event, "data": json.dumps(payload)}


class StatusEvent(PipelineEvent):
    event: Literal["status"] = "status"
    stage: ParseStage
    message: str = ""


class ItemEvent(PipelineEvent):
    """One extracted item, emitted in index order before it is persisted."""

    event: Literal["item"] = "item"
    index: int = Field(ge=0)
    type: str = "knowledge_point"
    data: dict[str, Any] = Field(default_factory=dict)


class BatchSavedEvent(PipelineEvent):
    """A batch of chunks was embedded and written; ``ids`` are the chunk ids."""

    event: Literal["batch_saved"] = "batch_saved"
    ids: list[str]
    batch_index: int = Field(default=0, ge=0)


class ErrorEvent(PipelineEvent):
    """A failure.  Only ``fatal`` errors end the stream.

    Non-fatal errors report a single failed batch or outline write while
    the run carries on.
    """

    event: Literal["error"] = "error"
    message: str
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    fatal: bool = True
    batch_index: int | None = None
    usage: int | None = None
    limit: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.fatal


class CompleteEvent(PipelineEvent):
    event: Literal["complete"] = "complete"
    item_count: int = Field(ge=0)
    failed_batches: int = Field(default=0, ge=0)

    @property
    def is_terminal(self) -> bool:
        return True
