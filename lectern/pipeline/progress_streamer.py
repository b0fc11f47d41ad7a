"""Ordered, bounded event channel for one ingestion run.

The orchestrator's producer task pushes events through the typed methods
below; the HTTP layer consumes them with ``async for``.  Events travel
through a bounded :class:`asyncio.Queue`, so a slow consumer applies
back-pressure to the producer instead of events piling up in memory.

Ordering rules enforced on every put:

* status stages only move forward (parsing_pdf < extracting < embedding),
* item indices are consecutive from 0,
* nothing is emitted after a terminal event (``complete`` or a fatal
  ``error``).

Violations raise :class:`~lectern.utils.errors.PipelineError`.  The
streamer also keeps a :class:`~lectern.models.pipeline.ParseJob` snapshot
of the run, updated with ``model_copy`` on every event.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from lectern.models.events import (
    BatchSavedEvent,
    CompleteEvent,
    ErrorEvent,
    ItemEvent,
    PipelineEvent,
    StatusEvent,
)
from lectern.models.pipeline import ErrorCode, JobProgress, ParseJob, ParseStage
from lectern.utils.errors import PipelineError
from lectern.utils.logging import get_logger

# Queue marker put by close(); never yielded.
_CLOSED = object()

DEFAULT_BUFFER_SIZE = 64


class ProgressStreamer:
    """Single-producer, single-consumer event stream for one document.

    Parameters
    ----------
    document_id:
        The document being ingested.
    maxsize:
        Queue capacity; ``put`` waits when the consumer falls this far behind.
    """

    def __init__(self, document_id: str, maxsize: int = DEFAULT_BUFFER_SIZE) -> None:
        self._job = ParseJob(document_id=document_id)
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._last_stage: ParseStage | None = None
        self._next_index = 0
        self._finished = False
        self._closed = False
        self._drained = False
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def snapshot(self) -> ParseJob:
        return self._job

    @property
    def is_finished(self) -> bool:
        """``True`` once a terminal event has been put."""
        return self._finished

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    async def status(self, stage: ParseStage, message: str = "", total: int | None = None) -> None:
        """Announce a new stage; *total* fixes the expected item count."""
        if stage.is_terminal:
            raise PipelineError(f"Use complete() or error() to finish, not status({stage.value})")
        if self._last_stage is not None and stage.rank <= self._last_stage.rank:
            raise PipelineError(
                f"Stage cannot move from {self._last_stage.value} to {stage.value}"
            )
        self._check_open()

        self._last_stage = stage
        update: dict[str, Any] = {"status": stage}
        if total is not None:
            update["progress"] = JobProgress(current=0, total=total)
        self._job = self._job.model_copy(update=update)
        await self._put(StatusEvent(stage=stage, message=message))

    async def item(self, index: int, type: str, data: dict[str, Any]) -> None:  # noqa: A002
        if index != self._next_index:
            raise PipelineError(f"Expected item index {self._next_index}, got {index}")
        self._check_open()

        self._next_index += 1
        progress = self._job.progress
        self._job = self._job.model_copy(
            update={
                "progress": JobProgress(
                    current=progress.current + 1,
                    total=max(progress.total, progress.current + 1),
                )
            }
        )
        await self._put(ItemEvent(index=index, type=type, data=data))

    async def batch_saved(self, ids: list[str], batch_index: int) -> None:
        self._check_open()
        await self._put(BatchSavedEvent(ids=ids, batch_index=batch_index))

    async def error(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        fatal: bool = True,
        batch_index: int | None = None,
        usage: int | None = None,
        limit: int | None = None,
    ) -> None:
        """Report a failure; a fatal error ends the stream."""
        self._check_open()
        if fatal:
            self._job = self._job.model_copy(update={"status": ParseStage.ERROR, "error": message})
        await self._put(
            ErrorEvent(
                message=message,
                code=code,
                fatal=fatal,
                batch_index=batch_index,
                usage=usage,
                limit=limit,
            )
        )

    async def complete(self, item_count: int, failed_batches: int = 0) -> None:
        self._check_open()
        self._job = self._job.model_copy(update={"status": ParseStage.COMPLETE})
        await self._put(CompleteEvent(item_count=item_count, failed_batches=failed_batches))

    async def emit(self, event: PipelineEvent) -> None:
        """Relay a ready-made event through the same ordering checks."""
        if isinstance(event, StatusEvent):
            await self.status(event.stage, event.message)
        elif isinstance(event, ItemEvent):
            await self.item(event.index, event.type, event.data)
        elif isinstance(event, BatchSavedEvent):
            await self.batch_saved(event.ids, event.batch_index)
        elif isinstance(event, ErrorEvent):
            await self.error(
                event.message,
                code=event.code,
                fatal=event.fatal,
                batch_index=event.batch_index,
                usage=event.usage,
                limit=event.limit,
            )
        elif isinstance(event, CompleteEvent):
            await self.complete(event.item_count, event.failed_batches)
        else:
            raise PipelineError(f"Unknown event type: {type(event).__name__}")

    def close(self) -> None:
        """End the stream without a terminal event (producer stopped)."""
        if self._closed:
            return
        self._closed = True
        # A full queue is drained first; __anext__ then sees the closed flag.
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(_CLOSED)

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    def __aiter__(self) -> ProgressStreamer:
        return self

    async def __anext__(self) -> PipelineEvent:
        if self._drained or (self._closed and self._queue.empty()):
            self._drained = True
            raise StopAsyncIteration

        event = await self._queue.get()
        if event is _CLOSED:
            self._drained = True
            raise StopAsyncIteration
        if event.is_terminal:
            self._drained = True
        return event

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._finished:
            raise PipelineError("Stream already finished; no events may follow a terminal event")
        if self._closed:
            raise PipelineError("Stream is closed")

    async def _put(self, event: PipelineEvent) -> None:
        if event.is_terminal:
            self._finished = True
        self._logger.debug(
            "stream_event",
            document_id=self._job.document_id,
            event_type=event.event,
            stage=self._job.status.value,
        )
        await self._queue.put(event)
