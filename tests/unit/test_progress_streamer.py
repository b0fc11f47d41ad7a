"""Unit tests for ProgressStreamer ordering rules and consumer behaviour."""

from __future__ import annotations

import asyncio

import pytest

from lectern.models.events import BatchSavedEvent, CompleteEvent, ErrorEvent, ItemEvent, StatusEvent
from lectern.models.pipeline import ErrorCode, ParseStage
from lectern.pipeline.progress_streamer import ProgressStreamer
from lectern.utils.errors import PipelineError


async def _drain(streamer: ProgressStreamer) -> list:
    return [event async for event in streamer]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_full_run_in_order(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.status(ParseStage.PARSING_PDF, "Reading document...")
        await streamer.status(ParseStage.EXTRACTING)
        await streamer.status(ParseStage.EMBEDDING, total=2)
        await streamer.item(0, "knowledge_point", {"title": "A"})
        await streamer.item(1, "knowledge_point", {"title": "B"})
        await streamer.batch_saved(["id-a", "id-b"], 0)
        await streamer.complete(2)

        events = await _drain(streamer)

        assert [e.event for e in events] == [
            "status",
            "status",
            "status",
            "item",
            "item",
            "batch_saved",
            "complete",
        ]
        assert [e.stage for e in events if isinstance(e, StatusEvent)] == [
            ParseStage.PARSING_PDF,
            ParseStage.EXTRACTING,
            ParseStage.EMBEDDING,
        ]

    @pytest.mark.asyncio
    async def test_stage_cannot_repeat_or_go_back(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.status(ParseStage.EXTRACTING)
        with pytest.raises(PipelineError):
            await streamer.status(ParseStage.EXTRACTING)
        with pytest.raises(PipelineError):
            await streamer.status(ParseStage.PARSING_PDF)

    @pytest.mark.asyncio
    async def test_terminal_stage_needs_dedicated_method(self) -> None:
        with pytest.raises(PipelineError):
            await ProgressStreamer("d1").status(ParseStage.COMPLETE)

    @pytest.mark.asyncio
    async def test_item_indices_must_be_consecutive(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.item(0, "knowledge_point", {})
        with pytest.raises(PipelineError):
            await streamer.item(2, "knowledge_point", {})

    @pytest.mark.asyncio
    async def test_nothing_after_complete(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.complete(0)
        with pytest.raises(PipelineError):
            await streamer.error("late")
        with pytest.raises(PipelineError):
            await streamer.item(0, "knowledge_point", {})

    @pytest.mark.asyncio
    async def test_nothing_after_fatal_error(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.error("boom", code=ErrorCode.EMPTY_PDF)
        with pytest.raises(PipelineError):
            await streamer.complete(0)

    @pytest.mark.asyncio
    async def test_non_fatal_error_keeps_stream_open(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.error("batch 0 failed", code=ErrorCode.EMBEDDING_ERROR, fatal=False, batch_index=0)
        await streamer.complete(3, failed_batches=1)

        events = await _drain(streamer)

        assert isinstance(events[0], ErrorEvent) and not events[0].fatal
        assert isinstance(events[1], CompleteEvent)
        assert events[1].failed_batches == 1


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_progress_tracks_items(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.status(ParseStage.EMBEDDING, total=3)
        await streamer.item(0, "knowledge_point", {})

        job = streamer.snapshot()
        assert job.status is ParseStage.EMBEDDING
        assert job.progress.current == 1
        assert job.progress.total == 3

    @pytest.mark.asyncio
    async def test_fatal_error_recorded(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.error("No text", code=ErrorCode.EMPTY_PDF)

        job = streamer.snapshot()
        assert job.status is ParseStage.ERROR
        assert job.error == "No text"
        assert streamer.is_finished


class TestConsumer:
    @pytest.mark.asyncio
    async def test_close_without_terminal_ends_iteration(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.status(ParseStage.PARSING_PDF)
        streamer.close()

        events = await _drain(streamer)

        assert len(events) == 1
        with pytest.raises(PipelineError):
            await streamer.status(ParseStage.EXTRACTING)

    @pytest.mark.asyncio
    async def test_emit_relays_typed_events(self) -> None:
        streamer = ProgressStreamer("d1")
        await streamer.emit(StatusEvent(stage=ParseStage.EMBEDDING))
        await streamer.emit(ItemEvent(index=0, data={"title": "A"}))
        await streamer.emit(BatchSavedEvent(ids=["x"], batch_index=0))
        await streamer.emit(CompleteEvent(item_count=1))

        events = await _drain(streamer)

        assert [e.event for e in events] == ["status", "item", "batch_saved", "complete"]

    @pytest.mark.asyncio
    async def test_bounded_queue_applies_back_pressure(self) -> None:
        streamer = ProgressStreamer("d1", maxsize=2)
        await streamer.item(0, "knowledge_point", {})
        await streamer.item(1, "knowledge_point", {})

        blocked = asyncio.create_task(streamer.item(2, "knowledge_point", {}))
        await asyncio.sleep(0)
        assert not blocked.done()

        first = await streamer.__anext__()
        await asyncio.wait_for(blocked, timeout=1)
        assert first.index == 0

    @pytest.mark.asyncio
    async def test_consumer_waits_for_producer(self) -> None:
        streamer = ProgressStreamer("d1")

        async def produce() -> None:
            await asyncio.sleep(0.01)
            await streamer.status(ParseStage.PARSING_PDF)
            await streamer.complete(0)

        task = asyncio.create_task(produce())
        events = await _drain(streamer)
        await task

        assert [e.event for e in events] == ["status", "complete"]
