"""Unit tests for Lectern domain models and settings helpers."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from lectern.config.settings import Settings, parse_window
from lectern.models.document import Document, DocumentStatus, DocumentType, Page
from lectern.models.events import BatchSavedEvent, CompleteEvent, ErrorEvent, ItemEvent, StatusEvent
from lectern.models.knowledge import KnowledgePoint, Section
from lectern.models.pipeline import ErrorCode, ParseJob, ParseStage
from lectern.utils.errors import ConfigurationError


class TestDomainModels:
    def test_document_defaults(self) -> None:
        doc = Document(id="d1", owner_id="u1")
        assert doc.type is DocumentType.LECTURE
        assert doc.status is DocumentStatus.DRAFT
        assert doc.course_id is None

    def test_models_are_frozen(self) -> None:
        doc = Document(id="d1", owner_id="u1")
        with pytest.raises(ValidationError):
            doc.status = DocumentStatus.READY  # type: ignore[misc]

    def test_model_copy_produces_new_instance(self) -> None:
        doc = Document(id="d1", owner_id="u1")
        ready = doc.model_copy(update={"status": DocumentStatus.READY})
        assert ready.status is DocumentStatus.READY
        assert doc.status is DocumentStatus.DRAFT

    def test_to_wire_uses_camel_case(self) -> None:
        doc = Document(id="d1", owner_id="u1", course_id="c1")
        wire = doc.to_wire()
        assert wire["ownerId"] == "u1"
        assert wire["courseId"] == "c1"
        assert wire["status"] == "draft"

    def test_page_numbers_start_at_one(self) -> None:
        with pytest.raises(ValidationError):
            Page(page=0, text="x")


class TestKnowledgeModels:
    def test_knowledge_point_accepts_camel_case(self) -> None:
        kp = KnowledgePoint.model_validate(
            {"title": "Chain rule", "content": "d/dx f(g(x))", "sourcePages": [3], "keyConcepts": ["chain"]}
        )
        assert kp.source_pages == [3]
        assert kp.key_concepts == ["chain"]
        assert kp.key_formulas == []

    def test_knowledge_point_null_lists_become_empty(self) -> None:
        kp = KnowledgePoint.model_validate({"title": "T", "content": "C", "examples": None})
        assert kp.examples == []

    def test_knowledge_point_rejects_blank_title(self) -> None:
        with pytest.raises(ValidationError):
            KnowledgePoint.model_validate({"title": "   ", "content": "C"})

    def test_section_requires_summary(self) -> None:
        with pytest.raises(ValidationError):
            Section.model_validate({"title": "Intro"})


class TestPipelineModels:
    def test_stage_order(self) -> None:
        assert ParseStage.PARSING_PDF.rank < ParseStage.EXTRACTING.rank < ParseStage.EMBEDDING.rank
        assert ParseStage.COMPLETE.is_terminal
        assert ParseStage.ERROR.is_terminal
        assert not ParseStage.EMBEDDING.is_terminal

    def test_parse_job_defaults(self) -> None:
        job = ParseJob(document_id="d1")
        assert job.status is ParseStage.PARSING_PDF
        assert job.progress.current == 0
        assert job.error is None


class TestEvents:
    def test_status_event_sse_shape(self) -> None:
        sse = StatusEvent(stage=ParseStage.EXTRACTING, message="AI extracting content...").to_sse()
        assert sse["event"] == "status"
        assert json.loads(sse["data"]) == {
            "stage": "extracting",
            "message": "AI extracting content...",
        }

    def test_item_event_data_is_nested(self) -> None:
        sse = ItemEvent(index=2, data={"title": "Power rule"}).to_sse()
        payload = json.loads(sse["data"])
        assert payload["index"] == 2
        assert payload["type"] == "knowledge_point"
        assert payload["data"] == {"title": "Power rule"}

    def test_batch_saved_uses_camel_case(self) -> None:
        payload = json.loads(BatchSavedEvent(ids=["a"], batch_index=1).to_sse()["data"])
        assert payload == {"ids": ["a"], "batchIndex": 1}

    def test_terminal_flags(self) -> None:
        assert CompleteEvent(item_count=0).is_terminal
        assert ErrorEvent(message="boom").is_terminal
        assert not ErrorEvent(message="batch", fatal=False, batch_index=0).is_terminal
        assert not StatusEvent(stage=ParseStage.EMBEDDING).is_terminal

    def test_error_event_carries_code(self) -> None:
        payload = json.loads(
            ErrorEvent(message="over", code=ErrorCode.QUOTA_EXCEEDED, usage=4, limit=3).to_sse()["data"]
        )
        assert payload["code"] == "QUOTA_EXCEEDED"
        assert payload["usage"] == 4
        assert payload["limit"] == 3


class TestSettings:
    @pytest.mark.parametrize(
        ("window", "seconds"),
        [("60 s", 60), ("10m", 600), ("1 h", 3600), ("1d", 86400), ("500ms", 0.5)],
    )
    def test_parse_window(self, window: str, seconds: float) -> None:
        assert parse_window(window) == pytest.approx(seconds)

    def test_parse_window_rejects_garbage(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_window("sixty seconds")

    def test_quota_enforced_in_production(self) -> None:
        assert Settings(_env_file=None, app_env="production", enable_ratelimit=False).quota_enforced

    def test_quota_not_enforced_in_development_by_default(self) -> None:
        assert not Settings(_env_file=None, app_env="development", enable_ratelimit=False).quota_enforced

    def test_quota_enforced_when_opted_in(self) -> None:
        assert Settings(_env_file=None, app_env="development", enable_ratelimit=True).quota_enforced
