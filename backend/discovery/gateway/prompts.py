"""Prompt text and tool schemas for every discovery LLM operation."""

from discovery.gateway.client import ToolSchema
from discovery.schemas.quiz import ConversationState, QuizAnswer, StakeholderSummary

# ---------------------------------------------------------------------------
# Tool schemas (forced structured output)
# ---------------------------------------------------------------------------

QUIZ_BATCH_TOOL = ToolSchema(
    name="generate_quiz_batch",
    description=(
        "Generate the next batch of discovery questions for the stakeholder. Return 2-4 "
        "multiple-choice questions that help understand the stakeholder's needs, challenges, "
        "and priorities. Set isComplete to true when you have gathered enough information "
        "for a thorough discovery summary."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "questions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {
                            "type": "string",
                            "description": 'Unique identifier for this question (e.g., "q1_1", "q2_3")',
                        },
                        "text": {"type": "string", "description": "The question text"},
                        "description": {
                            "type": "string",
                            "description": "Optional clarifying context for the question",
                        },
                        "type": {
                            "type": "string",
                            "enum": ["single", "multi"],
                            "description": "single = pick one, multi = pick several",
                        },
                        "options": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {"id": {"type": "string"}, "label": {"type": "string"}},
                                "required": ["id", "label"],
                            },
                            "minItems": 2,
                            "maxItems": 6,
                        },
                        "allowNoneOfTheAbove": {
                            "type": "boolean",
                            "description": 'Whether to show a "None of the above" option',
                        },
                    },
                    "required": ["id", "text", "type", "options", "allowNoneOfTheAbove"],
                },
                "minItems": 2,
                "maxItems": 4,
            },
            "isComplete": {
                "type": "boolean",
                "description": (
                    "Set to true when you have gathered enough information (typically after 4-6 "
                    "batches). When true, the questions array can be empty."
                ),
            },
            "progressHint": {
                "type": "string",
                "description": 'A brief hint about progress, e.g. "About halfway through"',
            },
            "batchNumber": {"type": "number", "description": "The current batch number (1-indexed)"},
        },
        "required": ["questions", "isComplete", "batchNumber"],
    },
)

SUMMARY_TOOL = ToolSchema(
    name="generate_discovery_summary",
    description="Generate a structured discovery summary based on all the answers collected during the session.",
    input_schema={
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": (
                    "A comprehensive discovery summary organized by themes. Include key findings, "
                    "priorities, challenges, and recommendations."
                ),
            },
            "keyThemes": {
                "type": "array",
                "items": {"type": "string"},
                "minItems": 3,
                "maxItems": 5,
                "description": "The top 3-5 key themes identified from the discovery",
            },
            "priorityLevel": {
                "type": "string",
                "enum": ["low", "medium", "high", "critical"],
                "description": "Overall urgency/priority level based on stakeholder responses",
            },
        },
        "required": ["summary", "keyThemes", "priorityLevel"],
    },
)

STEERING_TOOL = ToolSchema(
    name="suggest_focus_areas",
    description="Suggest 3-5 focus areas that could steer this stakeholder's discovery interview.",
    input_schema={
        "type": "object",
        "properties": {
            "suggestions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "label": {"type": "string", "description": "Short focus-area name (2-5 words)"},
                        "prompt": {
                            "type": "string",
                            "description": "One sentence telling the interviewer what to explore",
                        },
                    },
                    "required": ["label", "prompt"],
                },
                "minItems": 3,
                "maxItems": 5,
            }
        },
        "required": ["suggestions"],
    },
)

OVERVIEW_TOOL = ToolSchema(
    name="generate_engagement_overview",
    description="Synthesize individual stakeholder discovery summaries into one cross-stakeholder overview.",
    input_schema={
        "type": "object",
        "properties": {
            "overview": {
                "type": "string",
                "description": (
                    "Markdown overview covering shared themes, points of consensus, points of "
                    "divergence between stakeholders, and open questions."
                ),
            }
        },
        "required": ["overview"],
    },
)

EXTRACTION_TOOL = ToolSchema(
    name="extract_engagement_context",
    description="Extract an engagement description and interview context from the provided documents.",
    input_schema={
        "type": "object",
        "properties": {
            "description": {
                "type": "string",
                "description": "One or two sentences describing the engagement",
            },
            "context": {
                "type": "string",
                "description": (
                    "Detailed background for interviewers: goals, scope, systems, teams, known "
                    "problems, constraints and timelines found in the documents"
                ),
            },
            "documents": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "filename": {"type": "string"},
                        "summary": {"type": "string"},
                    },
                    "required": ["filename", "summary"],
                },
            },
        },
        "required": ["description", "context", "documents"],
    },
)

# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------


def _stakeholder_block(name: str, role: str | None) -> str:
    lines = ["## Stakeholder", f"- Name: {name}"]
    if role:
        lines.append(f"- Role: {role}")
    return "\n".join(lines)


def build_batch_system_prompt(state: ConversationState) -> str:
    context = state.engagement_context or "No specific context provided. Conduct a general stakeholder discovery."
    parts = [
        "You are a professional discovery consultant conducting a stakeholder interview for a consulting "
        "engagement. Your goal is to understand this stakeholder's perspective on the project, their "
        "challenges, priorities, and expectations.",
        f"## Engagement Context\n{context}",
        _stakeholder_block(state.stakeholder_name, state.stakeholder_role),
    ]
    if state.steering_prompt:
        parts.append(
            "## Focus Areas\nThe engagement lead asked you to steer this interview toward:\n"
            f"{state.steering_prompt}\nCover these areas, but follow the stakeholder's answers where they lead."
        )
    parts.append(
        "## Instructions\n"
        "- Generate 2-4 multiple-choice questions per batch\n"
        "- Start with broad questions about their role and primary challenges, then narrow down based on answers\n"
        "- Adapt your questions based on previous answers - drill deeper into areas of concern\n"
        '- Use "single" type for mutually exclusive choices, "multi" type when multiple answers make sense\n'
        '- Include "allowNoneOfTheAbove" when the options might not cover the stakeholder\'s situation\n'
        "- Never repeat a question that was already asked\n"
        "- After 4-6 batches (or when you have thorough coverage), set isComplete to true\n"
        "- Keep questions clear, professional, and relevant to the engagement context\n"
        "- Each question should have 3-5 options that cover the likely range of answers\n"
        "- Include a progressHint to let the stakeholder know how far along they are"
    )
    return "\n\n".join(parts)


def format_answer_history(answers: list[QuizAnswer]) -> str:
    return "\n".join(f"{i}. {answer.describe()}" for i, answer in enumerate(answers, start=1))


def build_batch_user_message(state: ConversationState) -> str:
    """Single user turn summarizing all prior Q&A (no multi-turn tool replay)."""
    if not state.all_answers:
        return "Please begin the discovery session. Generate the first batch of questions (batch 1)."
    return (
        f"Here are the stakeholder's answers so far across {state.current_batch_number - 1} "
        f"batch(es):\n\n{format_answer_history(state.all_answers)}\n\n"
        f"Generate batch {state.current_batch_number}. Build on these answers and do not repeat "
        "questions. If you have enough information for a thorough summary, set isComplete to true."
    )


def build_summary_system_prompt(state: ConversationState) -> str:
    return (
        "You are a professional discovery consultant. Based on the complete Q&A session below, "
        "generate a thorough discovery summary.\n\n"
        f"## Engagement Context\n{state.engagement_context or 'General stakeholder discovery.'}\n\n"
        f"{_stakeholder_block(state.stakeholder_name, state.stakeholder_role)}"
    )


def build_summary_user_message(state: ConversationState) -> str:
    return (
        "Here are all the stakeholder's answers from the discovery session:\n\n"
        f"{format_answer_history(state.all_answers) or '(no answers recorded)'}\n\n"
        "Please generate a comprehensive discovery summary."
    )


def build_steering_prompt(engagement_context: str, stakeholder_name: str, stakeholder_role: str | None) -> str:
    return (
        "You help a consulting engagement lead prepare a stakeholder discovery interview.\n\n"
        f"## Engagement Context\n{engagement_context or 'No specific context provided.'}\n\n"
        f"{_stakeholder_block(stakeholder_name, stakeholder_role)}\n\n"
        "Suggest 3-5 focus areas this stakeholder is best placed to speak to, given their role and "
        "the engagement. Each suggestion needs a short label and a one-sentence prompt."
    )


def build_overview_system_prompt(engagement_context: str) -> str:
    return (
        "You are a senior consultant synthesizing stakeholder discovery interviews into one "
        "engagement overview.\n\n"
        f"## Engagement Context\n{engagement_context or 'General stakeholder discovery.'}\n\n"
        "## Instructions\n"
        "- Report where stakeholders agree and where they diverge, attributing views by role\n"
        "- Surface shared themes, conflicting priorities, and open questions\n"
        "- Report what stakeholders said; do not editorialize or add recommendations of your own\n"
        "- Use markdown headings and bullet lists"
    )


def build_overview_user_message(summaries: list[StakeholderSummary]) -> str:
    sections = []
    for item in summaries:
        heading = item.stakeholder_name + (f" ({item.stakeholder_role})" if item.stakeholder_role else "")
        sections.append(f"### {heading}\n{item.summary}")
    return (
        f"Here are {len(summaries)} stakeholder discovery summaries:\n\n"
        + "\n\n".join(sections)
        + "\n\nSynthesize them into a single engagement overview."
    )


EXTRACTION_SYSTEM_PROMPT = (
    "You are preparing a consulting engagement for stakeholder discovery interviews. Read the "
    "provided documents and extract:\n"
    "- description: one or two sentences describing the engagement\n"
    "- context: everything an interviewer should know (goals, scope, systems, teams, known "
    "problems, constraints, timelines)\n"
    "- documents: a short summary of each document, keyed by its filename\n"
    "Only use facts found in the documents."
)
