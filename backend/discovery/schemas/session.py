"""Pydantic schemas for the public, token-authenticated session API."""

from pydantic import Field

from discovery.schemas.quiz import CamelModel, QuizAnswer, QuizBatch


class PublicSession(CamelModel):
    id: str
    stakeholder_name: str
    stakeholder_role: str | None = None
    status: str
    engagement_name: str
    engagement_description: str | None = None


class PublicSessionResponse(CamelModel):
    session: PublicSession


class AnswerRequest(CamelModel):
    answers: list[QuizAnswer] = Field(default_factory=list)


class SubmitRequest(CamelModel):
    # The final batch's answers may ride along with the submit call
    answers: list[QuizAnswer] = Field(default_factory=list)


class BatchResponse(CamelModel):
    batch: QuizBatch
