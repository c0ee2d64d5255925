"""Pydantic schemas for the admin API.

Request bodies accept camelCase (what the dashboard sends) or snake_case.
Response rows are snake_case, mirroring the database columns.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from discovery.schemas.quiz import CamelModel, SteeringSuggestion

# ==================== REQUESTS ====================


class LoginRequest(BaseModel):
    password: str | None = None


class CreateEngagementRequest(CamelModel):
    name: str | None = None
    description: str | None = None
    context: str | None = None
    board_id: str | None = None
    board_item_id: str | None = None


class StakeholderInput(CamelModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    steering_prompt: str | None = None


class CreateSessionRequest(CamelModel):
    stakeholder_name: str | None = None
    stakeholder_email: str | None = None
    stakeholder_role: str | None = None
    steering_prompt: str | None = None


class CreateSessionBatchRequest(CamelModel):
    stakeholders: list[StakeholderInput] = Field(default_factory=list)


class SuggestSteeringRequest(CamelModel):
    stakeholder_name: str | None = None
    stakeholder_role: str | None = None


class BoardSettingsRequest(CamelModel):
    api_key: str | None = None


# ==================== RESPONSES ====================


class EngagementView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    context: str | None = None
    engagement_overview: str | None = None
    board_id: str | None = None
    board_item_id: str | None = None
    created_at: datetime


class EngagementListItem(EngagementView):
    session_count: int = 0
    completed_count: int = 0


class SessionView(BaseModel):
    """Session row as the admin sees it. The conversation blob is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    token: str
    stakeholder_name: str
    stakeholder_email: str | None = None
    stakeholder_role: str | None = None
    steering_prompt: str | None = None
    status: str
    created_at: datetime
    completed_at: datetime | None = None


class ResultView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    answers_structured: list[dict] = Field(default_factory=list)  # stored camelCase QuizAnswers
    ai_summary: str = ""
    key_themes: list[str] | None = None
    priority_level: str | None = None
    created_at: datetime
    updated_at: datetime


class EngagementDetailView(EngagementView):
    sessions: list[SessionView] = Field(default_factory=list)
    results: list[ResultView] = Field(default_factory=list)


class CreatedSession(BaseModel):
    session: SessionView
    shareable_link: str = Field(..., serialization_alias="shareableLink")


class DocumentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    filename: str
    content_type: str
    size_bytes: int
    processing_status: str
    error_message: str | None = None
    created_at: datetime


class SteeringResponse(BaseModel):
    suggestions: list[SteeringSuggestion] = Field(default_factory=list)
