"""EngagementDocument model: uploaded source file feeding context extraction."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from discovery.db.base import Base
from discovery.db.models.enums import DocumentStatus


class EngagementDocument(Base):
    __tablename__ = "engagement_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    engagement_id = Column(Uuid(as_uuid=True), ForeignKey("engagements.id"), nullable=False, index=True)

    filename = Column(String(255), nullable=False)
    content_type = Column(String(255), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    blob_key = Column(String(512), nullable=False)

    processing_status = Column(String(20), nullable=False, default=DocumentStatus.PENDING.value)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
