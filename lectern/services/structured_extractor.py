"""LLM-based extraction of lecture sections and exam questions.

Sends the text of every page to the LLM provider in a single request with
a structured extraction prompt, then validates the JSON answer into
immutable :class:`~lectern.models.knowledge.Section` models, or
:class:`~lectern.models.knowledge.ExamQuestion` models for exam papers.

Architecture: one call, lenient validation
------------------------------------------
The model call is the only billable step of an ingestion run, so there is
exactly one attempt and no retry pass.  Output is validated piece by piece
rather than all-or-nothing: a section that fails validation is dropped, and
inside a surviving section a knowledge point that fails validation is
dropped.  Unparseable JSON, or JSON where nothing survives, yields an empty
list.  The orchestrator treats that as "no content", not as an error.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from lectern.interfaces.llm_provider import ILLMProvider
from lectern.models.document import Page
from lectern.models.knowledge import ExamQuestion, KnowledgePoint, Section
from lectern.utils.errors import ExtractionError
from lectern.utils.logging import get_logger

logger = get_logger(__name__)

# A markdown fence wrapped around the whole answer, which some models emit
# even in JSON mode.  Anchored so fences inside JSON strings are left alone.
_WRAPPING_FENCE_RE = re.compile(r"\A```(?:json)?\s*(.*?)\s*```\Z", re.DOTALL)

_SYSTEM_PROMPT = (
    "You are an academic content extraction expert.  You read lecture "
    "documents and organise them into sections of self-contained knowledge "
    'points.  You answer with a single JSON object holding a "sections" '
    "array and nothing else."
)

_QUESTION_SYSTEM_PROMPT = (
    "You are an expert academic content analyzer.  You read exam papers and "
    "split them into individual questions.  You answer with a single JSON "
    'object holding a "questions" array and nothing else.'
)

_KNOWLEDGE_POINT_KEYS = ("knowledgePoints", "knowledge_points")


class StructuredExtractor:
    """Turns page text into ordered sections of knowledge points.

    Parameters
    ----------
    llm_provider:
        Backend used for the single completion call.
    max_tokens:
        Upper bound on the response length.  Lecture decks produce long
        answers, so this is well above the provider default.
    """

    def __init__(self, llm_provider: ILLMProvider, max_tokens: int = 8192) -> None:
        self._llm = llm_provider
        self._max_tokens = max_tokens
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, pages: list[Page]) -> list[Section]:
        """Extract sections from *pages* with one model call.

        Returns
        -------
        list[Section]
            Sections and their knowledge points in the order the model
            produced them.  Empty when the answer is not valid JSON or no
            section passes validation.

        Raises
        ------
        ExtractionError
            If *pages* is empty.
        lectern.utils.errors.LLMError
            If the provider call itself fails.
        """
        if not pages:
            raise ExtractionError(message="Cannot extract sections from zero pages")

        provider_name = self._llm.get_provider_name()
        self._logger.info(
            "extraction_started",
            pages=len(pages),
            chars=sum(len(p.text) for p in pages),
            llm_provider=provider_name,
        )

        response = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=self.build_prompt(pages),
            temperature=0.0,
            max_tokens=self._max_tokens,
            json_mode=True,
        )

        sections = self.parse_response(response)
        self._logger.info(
            "extraction_complete",
            sections=len(sections),
            knowledge_points=sum(len(s.knowledge_points) for s in sections),
            llm_provider=provider_name,
        )
        return sections

    async def extract_questions(
        self, pages: list[Page], *, has_answers: bool = False
    ) -> list[ExamQuestion]:
        """Extract the individual questions of an exam paper with one model call.

        Same contract as :meth:`extract`: empty on unusable output,
        :class:`ExtractionError` on zero pages.
        """
        if not pages:
            raise ExtractionError(message="Cannot extract questions from zero pages")

        provider_name = self._llm.get_provider_name()
        self._logger.info(
            "question_extraction_started",
            pages=len(pages),
            has_answers=has_answers,
            llm_provider=provider_name,
        )

        response = await self._llm.complete(
            system_prompt=_QUESTION_SYSTEM_PROMPT,
            user_prompt=self.build_question_prompt(pages, has_answers=has_answers),
            temperature=0.0,
            max_tokens=self._max_tokens,
            json_mode=True,
        )

        questions = self.parse_questions(response, has_answers=has_answers)
        self._logger.info(
            "question_extraction_complete",
            questions=len(questions),
            llm_provider=provider_name,
        )
        return questions

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def build_prompt(pages: list[Page]) -> str:
        """Build the user prompt; pages appear as ``[Page N]`` blocks."""
        pages_text = "\n\n".join(f"[Page {p.page}]\n{p.text}" for p in pages)
        return (
            "Analyze the following lecture document and extract its structure "
            "as sections with knowledge points.\n"
            "\n"
            "For each SECTION:\n"
            "- title: The section/chapter heading or topic name\n"
            "- summary: One sentence summarizing what this section covers\n"
            "- sourcePages: Page numbers this section spans\n"
            "- knowledgePoints: Array of knowledge points in this section\n"
            "\n"
            "For each KNOWLEDGE POINT:\n"
            "- title: Precise, searchable title for the concept\n"
            "- content: Complete explanation including definitions, formulas "
            "(in LaTeX), conditions and examples, everything a student needs "
            "to understand this concept in one place\n"
            "- sourcePages: Page numbers the point comes from\n"
            "- keyConcepts (optional): Short list of terms the point defines\n"
            "- keyFormulas (optional): Formulas in LaTeX\n"
            "- examples (optional): Worked examples, one string each\n"
            "\n"
            "Rules:\n"
            "- Organize by the document's natural section/chapter structure\n"
            "- Each knowledge point must be understandable without reading the others\n"
            "- Do NOT create duplicate knowledge points across sections\n"
            '- Do NOT include classroom admin info ("homework due", "see you next week")\n'
            "- Do NOT include table-of-contents entries as separate knowledge points\n"
            "\n"
            'Return ONLY a valid JSON object with a "sections" array.  '
            "No markdown, no explanation.\n"
            "\n"
            f"Document ({len(pages)} pages):\n"
            f"{pages_text}"
        )

    @staticmethod
    def build_question_prompt(pages: list[Page], *, has_answers: bool = False) -> str:
        pages_text = "\n\n".join(f"[Page {p.page}]\n{p.text}" for p in pages)
        answer_line = (
            "- referenceAnswer: The reference answer or solution given in the document\n"
            if has_answers
            else "- referenceAnswer: Omit this field (the document has no answers)\n"
        )
        return (
            "Analyze the following exam document and extract each individual question.\n"
            "\n"
            "For each QUESTION:\n"
            '- questionNumber: The number or label as shown (e.g. "1", "1a", "Q1")\n'
            "- content: The full question text including any sub-parts\n"
            "- options: Answer options if it is a multiple choice question (omit otherwise)\n"
            f"{answer_line}"
            "- score: Points or marks allocated if shown (omit otherwise)\n"
            "- sourcePage: The page number where the question appears\n"
            "\n"
            'Return ONLY a valid JSON object with a "questions" array.  '
            "No markdown, no explanation.\n"
            "\n"
            f"Document ({len(pages)} pages):\n"
            f"{pages_text}"
        )

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_response(response: str) -> list[Section]:
        """Validate a raw model answer into sections, dropping invalid parts.

        Never raises on bad model output; returns ``[]`` instead.
        """
        try:
            parsed = _load_json(response)
        except json.JSONDecodeError as exc:
            logger.warning("extraction_invalid_json", error=str(exc), chars=len(response))
            return []

        raw_sections = parsed.get("sections") if isinstance(parsed, dict) else None
        if not isinstance(raw_sections, list):
            logger.warning("extraction_validation_failed", reason="missing_sections_array")
            return []

        sections = [s for s in (_validate_section(raw) for raw in raw_sections) if s]
        if not sections:
            logger.warning(
                "extraction_validation_failed",
                reason="no_valid_sections",
                raw_sections=len(raw_sections),
            )
        return sections

    @staticmethod
    def parse_questions(response: str, has_answers: bool = False) -> list[ExamQuestion]:
        """Validate a raw model answer into exam questions.

        Accepts ``{"questions": [...]}`` or a bare array.  Invalid entries
        are dropped, and reference answers are cleared when the paper has
        none.  Never raises on bad model output.
        """
        try:
            parsed = _load_json(response)
        except json.JSONDecodeError as exc:
            logger.warning("question_extraction_invalid_json", error=str(exc), chars=len(response))
            return []

        raw_questions = parsed.get("questions") if isinstance(parsed, dict) else parsed
        if not isinstance(raw_questions, list):
            logger.warning("question_extraction_validation_failed", reason="missing_questions_array")
            return []

        questions: list[ExamQuestion] = []
        for raw in raw_questions:
            try:
                question = ExamQuestion.model_validate(raw)
            except ValidationError as exc:
                logger.debug("question_dropped", errors=exc.error_count())
                continue
            if not has_answers and question.reference_answer:
                question = question.model_copy(update={"reference_answer": ""})
            questions.append(question)
        return questions


def _load_json(response: str) -> Any:
    text = response.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        fence_match = _WRAPPING_FENCE_RE.match(text)
        if fence_match is None:
            raise
    return json.loads(fence_match.group(1))


def _validate_section(raw: Any) -> Section | None:
    if not isinstance(raw, dict):
        return None

    raw_points: Any = None
    fields: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _KNOWLEDGE_POINT_KEYS:
            raw_points = value
        else:
            fields[key] = value

    points: list[KnowledgePoint] = []
    for raw_point in raw_points if isinstance(raw_points, list) else []:
        try:
            points.append(KnowledgePoint.model_validate(raw_point))
        except ValidationError as exc:
            logger.debug("knowledge_point_dropped", errors=exc.error_count())

    try:
        return Section.model_validate({**fields, "knowledgePoints": points})
    except ValidationError as exc:
        logger.debug("section_dropped", errors=exc.error_count())
        return None
