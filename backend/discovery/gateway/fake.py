"""GatewayFake: scenario-based test double for the DiscoveryGateway protocol.

Deterministic, instant responses for named scenarios:
- happy_path: 3 questions per batch, complete after ``complete_after`` batches
- llm_failure: every operation raises GatewayError
- stale_state: fresh conversations work, resumed ones get an empty, incomplete batch
- summary_failure: question batches work, summary and overview raise GatewayError

Also used as the gateway for local development when no Anthropic key is set.
"""

from discovery.core.exceptions import GatewayError
from discovery.gateway.service import DocumentInput
from discovery.schemas.quiz import (
    ConversationState,
    DiscoverySummary,
    DocumentExtraction,
    DocumentSummary,
    QuizBatch,
    QuizOption,
    QuizQuestion,
    StakeholderSummary,
    SteeringSuggestion,
)

_TOPICS = [
    ("role", "Which best describes your involvement in this project?", "single",
     ["Decision maker", "Day-to-day user", "Technical owner", "Occasional contributor"]),
    ("challenge", "What are your biggest challenges today?", "multi",
     ["Manual processes", "Poor visibility", "Slow approvals", "Tooling gaps", "Communication"]),
    ("priority", "What matters most for a successful outcome?", "single",
     ["Speed of delivery", "Cost reduction", "Quality and reliability", "User adoption"]),
    ("timeline", "When do you need to see results?", "single",
     ["Within a month", "This quarter", "Within six months", "No fixed deadline"]),
    ("risk", "Which risks concern you most?", "multi",
     ["Budget overrun", "Change resistance", "Data quality", "Vendor lock-in"]),
    ("success", "How would you measure success?", "multi",
     ["Time saved", "Fewer errors", "Happier customers", "Better reporting"]),
]


class GatewayFake:
    """Scenario-based test double for DiscoveryGateway."""

    VALID_SCENARIOS = {"happy_path", "llm_failure", "stale_state", "summary_failure"}

    def __init__(self, scenario: str = "happy_path", complete_after: int = 3):
        """Initialize GatewayFake with a named scenario.

        Args:
            scenario: One of VALID_SCENARIOS
            complete_after: Batch number after which batches report isComplete

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.complete_after = complete_after
        self.calls: list[str] = []
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    def _fail_if(self, *scenarios: str) -> None:
        if self.scenario in scenarios:
            raise GatewayError("Claude did not return a tool use response")

    async def next_batch(self, state: ConversationState) -> QuizBatch:
        self.calls.append("next_batch")
        self._fail_if("llm_failure")

        if self.scenario == "stale_state" and state.messages:
            return QuizBatch(questions=[], is_complete=False, batch_number=state.current_batch_number)

        number = state.current_batch_number
        if number > self.complete_after:
            return QuizBatch(
                questions=[],
                is_complete=True,
                progress_hint="All done - thank you!",
                batch_number=number,
            )

        questions = []
        for offset in range(3):
            key, text, kind, labels = _TOPICS[((number - 1) * 3 + offset) % len(_TOPICS)]
            questions.append(
                QuizQuestion(
                    id=f"q{number}_{offset + 1}",
                    text=text,
                    description=f"About {key}",
                    type=kind,
                    options=[QuizOption(id=f"o{i + 1}", label=label) for i, label in enumerate(labels)],
                    allow_none_of_the_above=kind == "multi",
                )
            )
        return QuizBatch(
            questions=questions,
            is_complete=number >= self.complete_after,
            progress_hint=f"Batch {number} of about {self.complete_after}",
            batch_number=number,
        )

    async def summarize(self, state: ConversationState) -> DiscoverySummary:
        self.calls.append("summarize")
        self._fail_if("llm_failure", "summary_failure")
        highlights = "; ".join(a.describe() for a in state.all_answers[:3]) or "no answers recorded"
        return DiscoverySummary(
            summary=f"{state.stakeholder_name} completed {len(state.all_answers)} answers. Highlights: {highlights}",
            key_themes=["Process efficiency", "Visibility", "Adoption"],
            priority_level="high",
        )

    async def suggest_steering(
        self, engagement_context: str, stakeholder_name: str, stakeholder_role: str | None
    ) -> list[SteeringSuggestion]:
        self.calls.append("suggest_steering")
        self._fail_if("llm_failure")
        role = stakeholder_role or "stakeholder"
        return [
            SteeringSuggestion(label="Current workflow", prompt=f"Explore how the {role} works today."),
            SteeringSuggestion(label="Pain points", prompt="Dig into the biggest day-to-day frustrations."),
            SteeringSuggestion(label="Success criteria", prompt="Ask what a great outcome looks like."),
        ]

    async def synthesize_overview(self, engagement_context: str, summaries: list[StakeholderSummary]) -> str:
        self.calls.append("synthesize_overview")
        self._fail_if("llm_failure", "summary_failure")
        names = ", ".join(s.stakeholder_name for s in summaries)
        return f"## Overview\nSynthesis of {len(summaries)} stakeholder interviews ({names})."

    async def extract_from_documents(self, documents: list[DocumentInput]) -> DocumentExtraction:
        self.calls.append("extract_from_documents")
        self._fail_if("llm_failure")
        return DocumentExtraction(
            description=f"Engagement described by {len(documents)} document(s).",
            context="\n".join(f"{d.filename}: {len(d.data)} bytes" for d in documents),
            documents=[DocumentSummary(filename=d.filename, summary=f"Summary of {d.filename}") for d in documents],
        )
