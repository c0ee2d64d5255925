"""DiscoveryResult model: durable output of a completed session."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid

from discovery.db.base import Base


class DiscoveryResult(Base):
    __tablename__ = "discovery_results"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True), ForeignKey("stakeholder_sessions.id"), nullable=False, unique=True, index=True
    )

    raw_conversation = Column(JSON, nullable=False, default=list)  # [{role, content}]
    answers_structured = Column(JSON, nullable=False, default=list)  # [QuizAnswer (camelCase)]

    # Empty until background summarization lands
    ai_summary = Column(Text, nullable=False, default="")
    key_themes = Column(JSON, nullable=True)
    priority_level = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
