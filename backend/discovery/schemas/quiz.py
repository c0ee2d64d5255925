"""Pydantic schemas for discovery quiz batches, answers and conversation state.

Wire format is camelCase (``isComplete``, ``selectedOptionIds``...) because
the stakeholder client and the persisted ConversationState blobs use it.
Python code uses snake_case attribute names; ``populate_by_name`` accepts both.
Unknown keys are ignored so state written by older releases still loads.
"""

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class QuizOption(CamelModel):
    id: str
    label: str


class QuizQuestion(CamelModel):
    id: str = Field(..., description="Unique within the batch, e.g. 'q2_1'")
    text: str
    description: str | None = None
    type: Literal["single", "multi"] = "single"
    options: list[QuizOption] = Field(..., min_length=2, max_length=6)
    allow_none_of_the_above: bool = False


class QuizBatch(CamelModel):
    """One round of questions. ``batch_number`` is owned by the engine, not the LLM."""

    questions: list[QuizQuestion] = Field(default_factory=list, max_length=4)
    is_complete: bool = False
    progress_hint: str | None = None
    batch_number: int = 1

    @property
    def is_degenerate(self) -> bool:
        """No questions yet not complete: the model could not make progress."""
        return not self.questions and not self.is_complete


class QuizAnswer(CamelModel):
    question_id: str
    question_text: str
    selected_option_ids: list[str] = Field(default_factory=list)
    selected_labels: list[str] = Field(default_factory=list)
    none_of_the_above: bool = False
    custom_text: str | None = None

    def normalized(self) -> "QuizAnswer":
        """Apply answer precedence: "none of the above" wins and clears selections.

        Free-text elaboration is kept either way. Blank custom text becomes None.
        """
        custom = self.custom_text.strip() if self.custom_text and self.custom_text.strip() else None
        if self.none_of_the_above:
            return self.model_copy(
                update={"selected_option_ids": [], "selected_labels": [], "custom_text": custom}
            )
        return self.model_copy(update={"custom_text": custom})

    def describe(self) -> str:
        """Render as one prompt/transcript line."""
        quoted = " and ".join(f'"{label}"' for label in self.selected_labels)
        if self.none_of_the_above:
            line = f'"{self.question_text}": Selected "None of the above"'
            if self.custom_text:
                line += f'; also wrote: "{self.custom_text}"'
            return line
        if self.custom_text:
            if quoted:
                return f'"{self.question_text}": Selected {quoted}; also wrote: "{self.custom_text}"'
            return f'"{self.question_text}": Wrote custom answer: "{self.custom_text}"'
        if quoted:
            return f'"{self.question_text}": Selected {quoted}'
        return f'"{self.question_text}": No answer'


class ConversationMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ConversationState(CamelModel):
    """Serializable working memory of one in-progress session.

    Persisted to both the cache and the store; must round-trip losslessly.
    """

    session_id: str
    engagement_context: str = ""
    stakeholder_name: str
    stakeholder_role: str | None = None
    steering_prompt: str | None = None
    messages: list[ConversationMessage] = Field(default_factory=list)
    all_answers: list[QuizAnswer] = Field(default_factory=list)
    current_batch_number: int = 1

    def record_batch(self, batch: QuizBatch) -> None:
        """Append the generated batch to the transcript (audit trail)."""
        self.messages.append(ConversationMessage(role="assistant", content=json.dumps(batch.to_wire())))

    def append_answers(self, answers: list[QuizAnswer]) -> None:
        """Record a round of answers and advance the batch counter."""
        normalized = [answer.normalized() for answer in answers]
        self.messages.append(
            ConversationMessage(role="user", content="\n".join(a.describe() for a in normalized))
        )
        self.all_answers.extend(normalized)
        self.current_batch_number += 1

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ConversationState":
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class DiscoverySummary(CamelModel):
    summary: str
    key_themes: list[str] = Field(default_factory=list)
    priority_level: Literal["low", "medium", "high", "critical"] = "medium"


class SteeringSuggestion(CamelModel):
    label: str
    prompt: str


class DocumentSummary(CamelModel):
    filename: str
    summary: str


class DocumentExtraction(CamelModel):
    description: str = ""
    context: str = ""
    documents: list[DocumentSummary] = Field(default_factory=list)


class StakeholderSummary(CamelModel):
    """One completed session's summary, as fed into overview synthesis."""

    stakeholder_name: str
    stakeholder_role: str | None = None
    summary: str
