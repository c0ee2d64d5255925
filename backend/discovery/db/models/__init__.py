"""Re-export all models so Base.metadata sees them."""

from discovery.db.models.discovery_result import DiscoveryResult
from discovery.db.models.engagement import Engagement
from discovery.db.models.engagement_document import EngagementDocument
from discovery.db.models.enums import DocumentStatus, SessionStatus
from discovery.db.models.stakeholder_session import StakeholderSession

__all__ = [
    "DiscoveryResult",
    "DocumentStatus",
    "Engagement",
    "EngagementDocument",
    "SessionStatus",
    "StakeholderSession",
]
