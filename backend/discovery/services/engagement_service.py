"""EngagementService: admin-side engagement and session management."""

import secrets
from dataclasses import dataclass

import structlog

from discovery.core.exceptions import GatewayError, InvalidInputError, NotFoundError
from discovery.db.models import Engagement, StakeholderSession
from discovery.gateway.service import DiscoveryGateway
from discovery.repositories.store import DiscoveryStore, EngagementDetail, EngagementSummaryRow
from discovery.schemas.quiz import SteeringSuggestion
from discovery.storage.blob import BlobStorage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NewStakeholder:
    name: str
    email: str | None = None
    role: str | None = None
    steering_prompt: str | None = None


def generate_session_token() -> str:
    """64 hex characters from 32 cryptographically random bytes."""
    return secrets.token_hex(32)


def shareable_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/session.html?token={token}"


class EngagementService:
    """Engagement CRUD, stakeholder invitations and steering suggestions."""

    def __init__(self, store: DiscoveryStore, gateway: DiscoveryGateway, blobs: BlobStorage):
        self.store = store
        self.gateway = gateway
        self.blobs = blobs

    async def create_engagement(
        self,
        name: str,
        description: str | None = None,
        context: str | None = None,
        board_id: str | None = None,
        board_item_id: str | None = None,
    ) -> Engagement:
        if not name or not name.strip():
            raise InvalidInputError("Name is required")
        engagement = await self.store.create_engagement(
            name.strip(), description, context, board_id, board_item_id
        )
        logger.info("engagement_created", engagement_id=str(engagement.id))
        return engagement

    async def list_engagements(self) -> list[EngagementSummaryRow]:
        return await self.store.list_engagements()

    async def get_detail(self, engagement_id: str) -> EngagementDetail:
        detail = await self.store.get_engagement_detail(engagement_id)
        if detail is None:
            raise NotFoundError("Engagement not found")
        return detail

    async def delete_engagement(self, engagement_id: str) -> None:
        """Cascade-delete the engagement, then its document blobs (best effort)."""
        blob_keys = await self.store.delete_engagement(engagement_id)
        if blob_keys is None:
            raise NotFoundError("Engagement not found")
        try:
            await self.blobs.delete_many(blob_keys)
        except Exception as exc:
            logger.warning(
                "engagement_blob_cleanup_failed",
                engagement_id=engagement_id,
                keys=len(blob_keys),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def create_sessions(
        self, engagement_id: str, stakeholders: list[NewStakeholder]
    ) -> list[StakeholderSession]:
        """Create one session per stakeholder with a non-blank name.

        Raises:
            NotFoundError: Engagement does not exist
            InvalidInputError: No stakeholder has a name
        """
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")

        named = [s for s in stakeholders if s.name and s.name.strip()]
        if not named:
            raise InvalidInputError("Stakeholder name is required")

        sessions = []
        for stakeholder in named:
            sessions.append(
                await self.store.create_session(
                    engagement.id,
                    generate_session_token(),
                    stakeholder.name.strip(),
                    stakeholder_email=stakeholder.email,
                    stakeholder_role=stakeholder.role,
                    steering_prompt=stakeholder.steering_prompt,
                )
            )
        logger.info("sessions_created", engagement_id=str(engagement.id), count=len(sessions))
        return sessions

    async def suggest_steering(
        self, engagement_id: str, stakeholder_name: str, stakeholder_role: str | None
    ) -> list[SteeringSuggestion]:
        """Focus-area suggestions; any LLM failure yields an empty list."""
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")
        try:
            return await self.gateway.suggest_steering(
                engagement.context or engagement.description or "",
                stakeholder_name or "Stakeholder",
                stakeholder_role,
            )
        except GatewayError as exc:
            logger.warning("steering_suggestions_failed", engagement_id=engagement_id, error=str(exc))
            return []
