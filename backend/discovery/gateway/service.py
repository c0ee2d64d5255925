"""DiscoveryGateway: the testable abstraction for all discovery LLM operations.

Implementations:
- AnthropicGateway: production, forced tool use via StructuredLLMClient
- GatewayFake (gateway/fake.py): deterministic double for tests and local dev

The engine and orchestrators only ever see validated pydantic objects; the
repair step below absorbs the model's common shape slips before validation.
"""

import base64
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from discovery.core.config import get_settings
from discovery.core.exceptions import GatewayError
from discovery.gateway import prompts
from discovery.gateway.client import StructuredLLMClient, StructuredRequest
from discovery.schemas.quiz import (
    ConversationState,
    DiscoverySummary,
    DocumentExtraction,
    QuizBatch,
    QuizQuestion,
    StakeholderSummary,
    SteeringSuggestion,
)

logger = structlog.get_logger(__name__)

MAX_QUESTIONS = 4
MAX_OPTIONS = 6
MAX_THEMES = 5
MAX_SUGGESTIONS = 5
PRIORITY_LEVELS = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class DocumentInput:
    filename: str
    content_type: str
    data: bytes

    @property
    def is_pdf(self) -> bool:
        return self.content_type == "application/pdf" or self.filename.lower().endswith(".pdf")


@runtime_checkable
class DiscoveryGateway(Protocol):
    async def next_batch(self, state: ConversationState) -> QuizBatch:
        """Generate the next question batch for ``state``. Raises GatewayError."""
        ...

    async def summarize(self, state: ConversationState) -> DiscoverySummary:
        """Summarize every answer in ``state``. Raises GatewayError."""
        ...

    async def suggest_steering(
        self, engagement_context: str, stakeholder_name: str, stakeholder_role: str | None
    ) -> list[SteeringSuggestion]:
        """Suggest 3-5 focus areas. Callers treat GatewayError as "no suggestions"."""
        ...

    async def synthesize_overview(self, engagement_context: str, summaries: list[StakeholderSummary]) -> str:
        """Combine two or more stakeholder summaries into one overview. Raises GatewayError."""
        ...

    async def extract_from_documents(self, documents: list[DocumentInput]) -> DocumentExtraction:
        """Turn uploaded documents into engagement description/context. Raises GatewayError."""
        ...

    async def aclose(self) -> None:
        """Release provider connections at shutdown."""
        ...


# ---------------------------------------------------------------------------
# Shape repair
# ---------------------------------------------------------------------------


def repair_batch(payload: dict[str, Any]) -> QuizBatch:
    """Validate a generate_quiz_batch payload, dropping what cannot be salvaged.

    - non-list ``questions`` becomes an empty list
    - questions that fail validation or have fewer than 2 options are dropped
    - options beyond 6 and questions beyond 4 are truncated
    """
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list):
        raw_questions = []

    questions: list[QuizQuestion] = []
    for raw in raw_questions:
        if not isinstance(raw, dict):
            continue
        candidate = dict(raw)
        if isinstance(candidate.get("options"), list):
            candidate["options"] = candidate["options"][:MAX_OPTIONS]
        try:
            questions.append(QuizQuestion.model_validate(candidate))
        except ValidationError as exc:
            logger.warning("quiz_question_dropped", question_id=raw.get("id"), error_count=exc.error_count())
        if len(questions) == MAX_QUESTIONS:
            break

    batch_number = payload.get("batchNumber")
    return QuizBatch(
        questions=questions,
        is_complete=bool(payload.get("isComplete", False)),
        progress_hint=payload.get("progressHint") if isinstance(payload.get("progressHint"), str) else None,
        batch_number=batch_number if isinstance(batch_number, int) else 1,
    )


def repair_summary(payload: dict[str, Any]) -> DiscoverySummary:
    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise GatewayError("Summary response did not include summary text")
    themes = payload.get("keyThemes")
    themes = [t for t in themes if isinstance(t, str) and t.strip()] if isinstance(themes, list) else []
    priority = payload.get("priorityLevel")
    return DiscoverySummary(
        summary=summary,
        key_themes=themes[:MAX_THEMES],
        priority_level=priority if priority in PRIORITY_LEVELS else "medium",
    )


def repair_suggestions(payload: dict[str, Any]) -> list[SteeringSuggestion]:
    raw = payload.get("suggestions")
    if not isinstance(raw, list):
        return []
    suggestions = []
    for item in raw:
        try:
            suggestions.append(SteeringSuggestion.model_validate(item))
        except ValidationError:
            continue
    return suggestions[:MAX_SUGGESTIONS]


# ---------------------------------------------------------------------------
# Production implementation
# ---------------------------------------------------------------------------


class AnthropicGateway:
    """Claude-backed gateway using forced tool calls for every operation."""

    def __init__(self, client: StructuredLLMClient | None = None):
        self.client = client or StructuredLLMClient()
        self.settings = get_settings()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def next_batch(self, state: ConversationState) -> QuizBatch:
        request = StructuredRequest(
            system=prompts.build_batch_system_prompt(state),
            messages=[{"role": "user", "content": prompts.build_batch_user_message(state)}],
            tool=prompts.QUIZ_BATCH_TOOL,
            max_tokens=self.settings.batch_max_tokens,
            metadata={"session_id": state.session_id, "batch_number": state.current_batch_number},
        )
        batch = repair_batch(await self.client.invoke(request))
        logger.info(
            "batch_generated",
            session_id=state.session_id,
            question_count=len(batch.questions),
            is_complete=batch.is_complete,
        )
        return batch

    async def summarize(self, state: ConversationState) -> DiscoverySummary:
        request = StructuredRequest(
            system=prompts.build_summary_system_prompt(state),
            messages=[{"role": "user", "content": prompts.build_summary_user_message(state)}],
            tool=prompts.SUMMARY_TOOL,
            max_tokens=self.settings.summary_max_tokens,
            metadata={"session_id": state.session_id},
        )
        return repair_summary(await self.client.invoke(request))

    async def suggest_steering(
        self, engagement_context: str, stakeholder_name: str, stakeholder_role: str | None
    ) -> list[SteeringSuggestion]:
        request = StructuredRequest(
            system=prompts.build_steering_prompt(engagement_context, stakeholder_name, stakeholder_role),
            messages=[{"role": "user", "content": f"Suggest focus areas for {stakeholder_name}."}],
            tool=prompts.STEERING_TOOL,
            max_tokens=self.settings.steering_max_tokens,
        )
        return repair_suggestions(await self.client.invoke(request))

    async def synthesize_overview(self, engagement_context: str, summaries: list[StakeholderSummary]) -> str:
        request = StructuredRequest(
            system=prompts.build_overview_system_prompt(engagement_context),
            messages=[{"role": "user", "content": prompts.build_overview_user_message(summaries)}],
            tool=prompts.OVERVIEW_TOOL,
            max_tokens=self.settings.overview_max_tokens,
            metadata={"summary_count": len(summaries)},
        )
        payload = await self.client.invoke(request)
        overview = payload.get("overview")
        if not isinstance(overview, str) or not overview.strip():
            raise GatewayError("Overview response did not include overview text")
        return overview

    async def extract_from_documents(self, documents: list[DocumentInput]) -> DocumentExtraction:
        request = StructuredRequest(
            system=prompts.EXTRACTION_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_document_blocks(documents)}],
            tool=prompts.EXTRACTION_TOOL,
            max_tokens=self.settings.extraction_max_tokens,
            metadata={"document_count": len(documents)},
        )
        payload = await self.client.invoke(request)
        try:
            return DocumentExtraction.model_validate(payload)
        except ValidationError as exc:
            raise GatewayError("Extraction response had an invalid shape") from exc


def build_document_blocks(documents: list[DocumentInput]) -> list[dict[str, Any]]:
    """PDFs become base64 document blocks; everything else is decoded and inlined."""
    blocks: list[dict[str, Any]] = []
    for doc in documents:
        if doc.is_pdf:
            blocks.append({"type": "text", "text": f"Document: {doc.filename}"})
            blocks.append(
                {
                    "type": "document",
                    "source": {
                        "type": "base64",
                        "media_type": "application/pdf",
                        "data": base64.standard_b64encode(doc.data).decode("ascii"),
                    },
                }
            )
        else:
            text = doc.data.decode("utf-8", errors="replace")
            blocks.append({"type": "text", "text": f"--- Document: {doc.filename} ---\n{text}"})
    blocks.append({"type": "text", "text": "Extract the engagement description and context from these documents."})
    return blocks
