"""SummarizationOrchestrator: per-session summaries and engagement overviews.

Architecture:
- run_session_summary() is dispatched by the engine after finalize and NEVER raises;
  a failure leaves ai_summary empty for the retry endpoint to heal
- retry_summary() regenerates synchronously from the durable DiscoveryResult,
  rebuilding a minimal ConversationState (the live one is gone after finalize)
- An overview is synthesized whenever the engagement has >= 2 non-empty summaries
- refresh_overview() validates, then hands the LLM call to the TaskSpawner
"""

from uuid import UUID

import structlog

from discovery.core.exceptions import InsufficientDataError, NotFoundError
from discovery.core.tasks import TaskSpawner
from discovery.gateway.service import DiscoveryGateway
from discovery.repositories.store import DiscoveryStore
from discovery.schemas.quiz import ConversationState, DiscoverySummary, QuizAnswer

logger = structlog.get_logger(__name__)

MIN_SUMMARIES_FOR_OVERVIEW = 2


class SummarizationOrchestrator:
    """Background and on-demand summary generation."""

    def __init__(self, store: DiscoveryStore, gateway: DiscoveryGateway, tasks: TaskSpawner):
        self.store = store
        self.gateway = gateway
        self.tasks = tasks

    async def run_session_summary(self, session_id: str) -> None:
        """Summarize a completed session, then refresh the overview if possible.

        Safe for fire-and-forget dispatch: every failure is logged and absorbed.
        """
        try:
            summary, engagement_id = await self._generate_and_store(session_id)
            logger.info("summary_generated", session_id=session_id, themes=len(summary.key_themes))
        except Exception as exc:
            logger.warning(
                "summary_generation_failed",
                session_id=session_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        await self._overview_if_ready(engagement_id)

    async def retry_summary(self, session_id: str) -> DiscoverySummary:
        """Regenerate a stalled summary synchronously.

        Args:
            session_id: Completed session whose summary should be (re)generated

        Returns:
            The freshly written DiscoverySummary

        Raises:
            NotFoundError: Session or its DiscoveryResult does not exist
            GatewayError: LLM call failed (surfaced to the admin)
        """
        summary, engagement_id = await self._generate_and_store(session_id)
        logger.info("summary_regenerated", session_id=session_id)

        summaries = await self.store.list_summaries(engagement_id)
        if len(summaries) >= MIN_SUMMARIES_FOR_OVERVIEW:
            await self.tasks.spawn(f"engagement-overview:{engagement_id}", self.run_overview, str(engagement_id))
        return summary

    async def refresh_overview(self, engagement_id: str) -> str:
        """Validate and schedule an overview synthesis.

        Returns:
            "in_progress" once the background task has been dispatched

        Raises:
            NotFoundError: Engagement does not exist
            InsufficientDataError: Fewer than 2 sessions have a non-empty summary
        """
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")

        summaries = await self.store.list_summaries(engagement.id)
        if len(summaries) < MIN_SUMMARIES_FOR_OVERVIEW:
            raise InsufficientDataError(
                f"Need at least {MIN_SUMMARIES_FOR_OVERVIEW} completed summaries, found {len(summaries)}"
            )

        await self.tasks.spawn(f"engagement-overview:{engagement.id}", self.run_overview, str(engagement.id))
        return "in_progress"

    async def run_overview(self, engagement_id: str) -> None:
        """Synthesize and store the engagement overview. NEVER raises."""
        try:
            engagement = await self.store.get_engagement(engagement_id)
            if engagement is None:
                logger.warning("overview_engagement_missing", engagement_id=engagement_id)
                return
            summaries = await self.store.list_summaries(engagement.id)
            if len(summaries) < MIN_SUMMARIES_FOR_OVERVIEW:
                logger.info("overview_skipped", engagement_id=engagement_id, summaries=len(summaries))
                return
            overview = await self.gateway.synthesize_overview(engagement.context or "", summaries)
            await self.store.update_engagement_overview(engagement.id, overview)
            logger.info("overview_generated", engagement_id=engagement_id, summaries=len(summaries))
        except Exception as exc:
            logger.warning(
                "overview_generation_failed",
                engagement_id=engagement_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _overview_if_ready(self, engagement_id: UUID) -> None:
        try:
            summaries = await self.store.list_summaries(engagement_id)
        except Exception as exc:
            logger.warning("overview_check_failed", engagement_id=str(engagement_id), error=str(exc))
            return
        if len(summaries) >= MIN_SUMMARIES_FOR_OVERVIEW:
            await self.run_overview(str(engagement_id))

    async def _generate_and_store(self, session_id: str) -> tuple[DiscoverySummary, UUID]:
        ctx = await self.store.get_session(session_id)
        if ctx is None:
            raise NotFoundError("Session not found")
        result = await self.store.get_discovery_result(ctx.session.id)
        if result is None:
            raise NotFoundError("No discovery result for this session")

        # Minimal state: summarize only needs identity, context and answers
        state = ConversationState(
            session_id=str(ctx.session.id),
            engagement_context=ctx.engagement.context or "",
            stakeholder_name=ctx.session.stakeholder_name,
            stakeholder_role=ctx.session.stakeholder_role,
            steering_prompt=ctx.session.steering_prompt,
            all_answers=[QuizAnswer.model_validate(a) for a in result.answers_structured or []],
        )
        summary = await self.gateway.summarize(state)
        await self.store.update_discovery_summary(ctx.session.id, summary)
        return summary, ctx.engagement.id
