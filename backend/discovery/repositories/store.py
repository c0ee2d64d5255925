"""DiscoveryStore: typed durable reads/writes over the relational database.

The store is the system of record for engagements, sessions, results,
documents and serialized conversation state. Each method opens its own
AsyncSession and closes it on every exit path.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import case, delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from discovery.db.models import (
    DiscoveryResult,
    DocumentStatus,
    Engagement,
    EngagementDocument,
    SessionStatus,
    StakeholderSession,
)
from discovery.db.models.enums import SESSION_STATUS_RANK
from discovery.schemas.quiz import ConversationState, DiscoverySummary, StakeholderSummary

logger = structlog.get_logger(__name__)


def _uuid(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class SessionContext:
    """A session row together with its owning engagement."""

    session: StakeholderSession
    engagement: Engagement


@dataclass(frozen=True)
class EngagementSummaryRow:
    engagement: Engagement
    session_count: int
    completed_count: int


@dataclass(frozen=True)
class EngagementDetail:
    engagement: Engagement
    sessions: list[StakeholderSession]
    results: list[DiscoveryResult]


class DiscoveryStore:
    """Durable store adapter."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Engagements
    # ------------------------------------------------------------------

    async def create_engagement(
        self,
        name: str,
        description: str | None = None,
        context: str | None = None,
        board_id: str | None = None,
        board_item_id: str | None = None,
    ) -> Engagement:
        async with self.session_factory() as session:
            engagement = Engagement(
                name=name,
                description=description or None,
                context=context or None,
                board_id=board_id or None,
                board_item_id=board_item_id or None,
            )
            session.add(engagement)
            await session.commit()
            await session.refresh(engagement)
            return engagement

    async def list_engagements(self) -> list[EngagementSummaryRow]:
        """All engagements, newest first, with session and completion counts."""
        async with self.session_factory() as session:
            completed = func.coalesce(
                func.sum(case((StakeholderSession.status == SessionStatus.COMPLETED.value, 1), else_=0)), 0
            )
            result = await session.execute(
                select(Engagement, func.count(StakeholderSession.id), completed)
                .outerjoin(StakeholderSession, StakeholderSession.engagement_id == Engagement.id)
                .group_by(Engagement.id)
                .order_by(Engagement.created_at.desc())
            )
            return [
                EngagementSummaryRow(engagement=row[0], session_count=int(row[1]), completed_count=int(row[2]))
                for row in result.all()
            ]

    async def get_engagement(self, engagement_id: str | UUID) -> Engagement | None:
        eid = _uuid(engagement_id)
        if eid is None:
            return None
        async with self.session_factory() as session:
            return await session.get(Engagement, eid)

    async def get_engagement_detail(self, engagement_id: str | UUID) -> EngagementDetail | None:
        """Engagement with its sessions (newest first) and completed sessions' results."""
        eid = _uuid(engagement_id)
        if eid is None:
            return None
        async with self.session_factory() as session:
            engagement = await session.get(Engagement, eid)
            if engagement is None:
                return None

            sessions_result = await session.execute(
                select(StakeholderSession)
                .where(StakeholderSession.engagement_id == eid)
                .order_by(StakeholderSession.created_at.desc())
            )
            sessions = list(sessions_result.scalars().all())

            completed_ids = [s.id for s in sessions if s.status == SessionStatus.COMPLETED.value]
            results: list[DiscoveryResult] = []
            if completed_ids:
                results_result = await session.execute(
                    select(DiscoveryResult).where(DiscoveryResult.session_id.in_(completed_ids))
                )
                results = list(results_result.scalars().all())

            return EngagementDetail(engagement=engagement, sessions=sessions, results=results)

    async def delete_engagement(self, engagement_id: str | UUID) -> list[str] | None:
        """Delete an engagement and everything it owns.

        Returns:
            Blob keys of the deleted documents, or None if the engagement does not exist
        """
        eid = _uuid(engagement_id)
        if eid is None:
            return None
        async with self.session_factory() as session:
            engagement = await session.get(Engagement, eid)
            if engagement is None:
                return None

            blob_keys = list(
                (
                    await session.execute(
                        select(EngagementDocument.blob_key).where(EngagementDocument.engagement_id == eid)
                    )
                ).scalars().all()
            )
            session_ids = select(StakeholderSession.id).where(StakeholderSession.engagement_id == eid)

            await session.execute(delete(DiscoveryResult).where(DiscoveryResult.session_id.in_(session_ids)))
            await session.execute(delete(StakeholderSession).where(StakeholderSession.engagement_id == eid))
            await session.execute(delete(EngagementDocument).where(EngagementDocument.engagement_id == eid))
            await session.execute(delete(Engagement).where(Engagement.id == eid))
            await session.commit()

            logger.info("engagement_deleted", engagement_id=str(eid), documents=len(blob_keys))
            return blob_keys

    async def update_engagement_from_documents(
        self, engagement_id: str | UUID, description: str, context: str
    ) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(Engagement)
                .where(Engagement.id == _uuid(engagement_id))
                .values(description=description or None, context=context or None)
            )
            await session.commit()

    async def update_engagement_overview(self, engagement_id: str | UUID, overview: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(Engagement).where(Engagement.id == _uuid(engagement_id)).values(engagement_overview=overview)
            )
            await session.commit()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(
        self,
        engagement_id: str | UUID,
        token: str,
        stakeholder_name: str,
        stakeholder_email: str | None = None,
        stakeholder_role: str | None = None,
        steering_prompt: str | None = None,
    ) -> StakeholderSession:
        async with self.session_factory() as session:
            row = StakeholderSession(
                engagement_id=_uuid(engagement_id),
                token=token,
                stakeholder_name=stakeholder_name,
                stakeholder_email=stakeholder_email or None,
                stakeholder_role=stakeholder_role or None,
                steering_prompt=steering_prompt or None,
                status=SessionStatus.PENDING.value,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    async def get_session_by_token(self, token: str) -> SessionContext | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StakeholderSession, Engagement)
                .join(Engagement, Engagement.id == StakeholderSession.engagement_id)
                .where(StakeholderSession.token == token)
            )
            row = result.first()
            return SessionContext(session=row[0], engagement=row[1]) if row else None

    async def get_session(self, session_id: str | UUID) -> SessionContext | None:
        sid = _uuid(session_id)
        if sid is None:
            return None
        async with self.session_factory() as session:
            result = await session.execute(
                select(StakeholderSession, Engagement)
                .join(Engagement, Engagement.id == StakeholderSession.engagement_id)
                .where(StakeholderSession.id == sid)
            )
            row = result.first()
            return SessionContext(session=row[0], engagement=row[1]) if row else None

    async def advance_session_status(self, session_id: str | UUID, status: SessionStatus) -> bool:
        """Move a session forward to ``status``; never moves it backwards.

        Returns:
            True if the row changed, False if it was already at or past ``status``
        """
        lower = [s for s, rank in SESSION_STATUS_RANK.items() if rank < SESSION_STATUS_RANK[status]]
        values: dict = {"status": status.value}
        if status == SessionStatus.COMPLETED:
            values["completed_at"] = datetime.now(UTC)
        async with self.session_factory() as session:
            result = await session.execute(
                update(StakeholderSession)
                .where(StakeholderSession.id == _uuid(session_id), StakeholderSession.status.in_(lower))
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0

    async def save_conversation_state(self, session_id: str | UUID, state: ConversationState | None) -> bool:
        """Write (or clear) the stored conversation state of an open session.

        Returns:
            False when the session is already completed (nothing written)
        """
        payload = state.to_wire() if state is not None else None
        async with self.session_factory() as session:
            result = await session.execute(
                update(StakeholderSession)
                .where(
                    StakeholderSession.id == _uuid(session_id),
                    StakeholderSession.status != SessionStatus.COMPLETED.value,
                )
                .values(conversation_state=payload)
            )
            await session.commit()
            return result.rowcount > 0

    async def load_conversation_state(self, session_id: str | UUID) -> ConversationState | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StakeholderSession.conversation_state).where(StakeholderSession.id == _uuid(session_id))
            )
            payload = result.scalar_one_or_none()
        if not payload:
            return None
        return ConversationState.model_validate(payload)

    async def complete_session(self, session_id: str | UUID, state: ConversationState) -> DiscoveryResult | None:
        """Durably record the final answers and mark the session completed.

        One transaction: flip status to completed (only from an open status),
        stamp completed_at, clear the conversation state, then upsert the
        DiscoveryResult with the summary left as-is or empty.

        Returns:
            The result row, or None when the session was already completed
        """
        sid = _uuid(session_id)
        raw_conversation = [m.to_wire() for m in state.messages]
        answers = [a.to_wire() for a in state.all_answers]
        async with self.session_factory() as session:
            flipped = await session.execute(
                update(StakeholderSession)
                .where(
                    StakeholderSession.id == sid,
                    StakeholderSession.status != SessionStatus.COMPLETED.value,
                )
                .values(
                    status=SessionStatus.COMPLETED.value,
                    completed_at=datetime.now(UTC),
                    conversation_state=None,
                )
            )
            if flipped.rowcount == 0:
                await session.rollback()
                return None

            existing = await session.execute(select(DiscoveryResult).where(DiscoveryResult.session_id == sid))
            result = existing.scalar_one_or_none()
            if result is None:
                result = DiscoveryResult(
                    session_id=sid,
                    raw_conversation=raw_conversation,
                    answers_structured=answers,
                    ai_summary="",
                )
                session.add(result)
            else:
                result.raw_conversation = raw_conversation
                result.answers_structured = answers

            await session.commit()
            await session.refresh(result)
            return result

    # ------------------------------------------------------------------
    # Discovery results
    # ------------------------------------------------------------------

    async def get_discovery_result(self, session_id: str | UUID) -> DiscoveryResult | None:
        sid = _uuid(session_id)
        if sid is None:
            return None
        async with self.session_factory() as session:
            result = await session.execute(select(DiscoveryResult).where(DiscoveryResult.session_id == sid))
            return result.scalar_one_or_none()

    async def update_discovery_summary(self, session_id: str | UUID, summary: DiscoverySummary) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(DiscoveryResult)
                .where(DiscoveryResult.session_id == _uuid(session_id))
                .values(
                    ai_summary=summary.summary,
                    key_themes=list(summary.key_themes),
                    priority_level=summary.priority_level,
                )
            )
            await session.commit()

    async def list_summaries(self, engagement_id: str | UUID) -> list[StakeholderSummary]:
        """Non-empty summaries of the engagement's sessions, oldest session first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    StakeholderSession.stakeholder_name,
                    StakeholderSession.stakeholder_role,
                    DiscoveryResult.ai_summary,
                )
                .join(DiscoveryResult, DiscoveryResult.session_id == StakeholderSession.id)
                .where(
                    StakeholderSession.engagement_id == _uuid(engagement_id),
                    DiscoveryResult.ai_summary.is_not(None),
                    DiscoveryResult.ai_summary != "",
                )
                .order_by(StakeholderSession.created_at)
            )
            return [
                StakeholderSummary(stakeholder_name=name, stakeholder_role=role, summary=summary)
                for name, role, summary in result.all()
            ]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(
        self,
        engagement_id: str | UUID,
        filename: str,
        content_type: str,
        size_bytes: int,
        blob_key: str,
    ) -> EngagementDocument:
        async with self.session_factory() as session:
            document = EngagementDocument(
                engagement_id=_uuid(engagement_id),
                filename=filename,
                content_type=content_type,
                size_bytes=size_bytes,
                blob_key=blob_key,
                processing_status=DocumentStatus.PENDING.value,
            )
            session.add(document)
            await session.commit()
            await session.refresh(document)
            return document

    async def list_documents(self, engagement_id: str | UUID) -> list[EngagementDocument]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(EngagementDocument)
                .where(EngagementDocument.engagement_id == _uuid(engagement_id))
                .order_by(EngagementDocument.created_at.desc())
            )
            return list(result.scalars().all())

    async def begin_extraction(self, engagement_id: str | UUID) -> int:
        """Flip every document of the engagement to processing in one statement.

        The flip only happens when no sibling is already processing, so two
        concurrent triggers cannot both start a run.

        Returns:
            Number of documents flipped (0 means another run holds the engagement)
        """
        eid = _uuid(engagement_id)
        sibling = aliased(EngagementDocument)
        already_processing = exists().where(
            sibling.engagement_id == eid,
            sibling.processing_status == DocumentStatus.PROCESSING.value,
        )
        async with self.session_factory() as session:
            result = await session.execute(
                update(EngagementDocument)
                .where(EngagementDocument.engagement_id == eid, ~already_processing)
                .values(processing_status=DocumentStatus.PROCESSING.value, error_message=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

    async def set_document_statuses(
        self, engagement_id: str | UUID, status: DocumentStatus, error_message: str | None = None
    ) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(EngagementDocument)
                .where(EngagementDocument.engagement_id == _uuid(engagement_id))
                .values(processing_status=status.value, error_message=error_message)
            )
            await session.commit()
