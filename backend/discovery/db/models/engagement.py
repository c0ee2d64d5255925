"""Engagement model: one consulting project and its shared context."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid

from discovery.db.base import Base


class Engagement(Base):
    __tablename__ = "engagements"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    context = Column(Text, nullable=True)  # manual, board import, or document extraction
    engagement_overview = Column(Text, nullable=True)  # cross-stakeholder synthesis

    # Optional link to a project-management board item
    board_id = Column(String(64), nullable=True)
    board_item_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
