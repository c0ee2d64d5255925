"""StakeholderSession model: one stakeholder's token-authenticated interview.

``conversation_state`` holds the serialized ConversationState (camelCase JSON)
while the interview is in progress and is cleared on completion.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid

from discovery.db.base import Base
from discovery.db.models.enums import SessionStatus


class StakeholderSession(Base):
    __tablename__ = "stakeholder_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    engagement_id = Column(Uuid(as_uuid=True), ForeignKey("engagements.id"), nullable=False, index=True)

    # 64 hex chars; the only credential a stakeholder holds
    token = Column(String(64), nullable=False, unique=True, index=True)

    stakeholder_name = Column(String(255), nullable=False)
    stakeholder_email = Column(String(255), nullable=True)
    stakeholder_role = Column(String(255), nullable=True)
    steering_prompt = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value)  # pending, in_progress, completed
    conversation_state = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)
