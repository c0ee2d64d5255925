"""ConversationEngine: drives one stakeholder session from start to completion.

Responsibilities:
- Session lifecycle: start (fresh or resumed), submit_answers, finalize
- Dual-store state: read cache first, fall back to the store, write both
- Stale-state recovery: a resumed state that yields an empty, incomplete batch
  is discarded and the conversation restarts fresh
- Engine-owned batch numbering (the LLM's count is overwritten)
- Durable completion before any summary work is dispatched
"""

from typing import Any

import structlog
from redis.exceptions import RedisError

from discovery.core.exceptions import AlreadyCompletedError, InvalidInputError, NotFoundError, StateMissingError
from discovery.core.tasks import TaskSpawner
from discovery.db.models import SessionStatus
from discovery.gateway.service import DiscoveryGateway
from discovery.repositories.cache import ConversationCache
from discovery.repositories.store import DiscoveryStore, SessionContext
from discovery.schemas.quiz import ConversationState, QuizAnswer, QuizBatch
from discovery.services.summarization import SummarizationOrchestrator

logger = structlog.get_logger(__name__)


class ConversationEngine:
    """State machine coordinating store, cache and gateway for one session."""

    def __init__(
        self,
        store: DiscoveryStore,
        cache: ConversationCache,
        gateway: DiscoveryGateway,
        summarizer: SummarizationOrchestrator,
        tasks: TaskSpawner,
    ):
        """Initialize with explicit collaborators.

        Args:
            store: Durable store (system of record)
            cache: Fast conversation-state cache
            gateway: LLM gateway (AnthropicGateway or GatewayFake)
            summarizer: Orchestrator used for post-completion summary work
            tasks: Spawner for detached background work
        """
        self.store = store
        self.cache = cache
        self.gateway = gateway
        self.summarizer = summarizer
        self.tasks = tasks

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(self, token: str) -> QuizBatch:
        """Start or resume the session identified by ``token``.

        Returns:
            The batch the stakeholder should answer next

        Raises:
            NotFoundError: Unknown token
            AlreadyCompletedError: Session already completed
            GatewayError: LLM produced no usable batch
        """
        ctx = await self._load_open_session(token)
        session_id = str(ctx.session.id)

        existing = await self._load_state(session_id)
        if existing is not None:
            batch = await self.gateway.next_batch(existing)
            if not batch.is_degenerate:
                batch.batch_number = existing.current_batch_number
                existing.record_batch(batch)
                await self._save_state(existing)
                logger.info("session_resumed", session_id=session_id, batch_number=batch.batch_number)
                return batch

            logger.warning(
                "stale_state_discarded",
                session_id=session_id,
                batch_number=existing.current_batch_number,
                answers=len(existing.all_answers),
            )
            await self._delete_cached_state(session_id)
            await self.store.save_conversation_state(session_id, None)

        state = ConversationState(
            session_id=session_id,
            engagement_context=ctx.engagement.context or "",
            stakeholder_name=ctx.session.stakeholder_name,
            stakeholder_role=ctx.session.stakeholder_role,
            steering_prompt=ctx.session.steering_prompt,
            current_batch_number=1,
        )
        batch = await self.gateway.next_batch(state)
        batch.batch_number = state.current_batch_number
        state.record_batch(batch)

        await self.store.advance_session_status(session_id, SessionStatus.IN_PROGRESS)
        await self._save_state(state)
        logger.info("session_started", session_id=session_id, question_count=len(batch.questions))
        return batch

    async def submit_answers(self, token: str, answers: list[QuizAnswer]) -> QuizBatch:
        """Record a round of answers and return the next batch.

        Raises:
            InvalidInputError: No answers supplied
            NotFoundError: Unknown token
            AlreadyCompletedError: Session already completed
            StateMissingError: Neither cache nor store holds the conversation
            GatewayError: LLM produced no usable batch
        """
        if not answers:
            raise InvalidInputError("Answers are required")

        ctx = await self._load_open_session(token)
        session_id = str(ctx.session.id)
        state = await self._require_state(session_id)

        state.append_answers(answers)
        batch = await self.gateway.next_batch(state)
        batch.batch_number = state.current_batch_number
        state.record_batch(batch)

        await self._save_state(state)
        logger.info(
            "answers_submitted",
            session_id=session_id,
            answer_count=len(answers),
            batch_number=batch.batch_number,
            is_complete=batch.is_complete,
        )
        return batch

    async def finalize(self, token: str, trailing_answers: list[QuizAnswer] | None = None) -> dict[str, Any]:
        """Complete the session durably, then dispatch summary generation.

        The store write (answers, transcript, completed status) happens before
        anything touches the LLM, so a summary failure can never lose answers
        or leave the session open.

        Raises:
            NotFoundError: Unknown token
            AlreadyCompletedError: Session already completed
            StateMissingError: Neither cache nor store holds the conversation
        """
        ctx = await self._load_open_session(token)
        session_id = str(ctx.session.id)
        state = await self._require_state(session_id)

        if trailing_answers:
            state.append_answers(trailing_answers)

        if await self.store.complete_session(session_id, state) is None:
            raise AlreadyCompletedError("This session has already been completed")
        await self._delete_cached_state(session_id)
        logger.info("session_completed", session_id=session_id, answer_count=len(state.all_answers))

        await self.tasks.spawn(
            f"session-summary:{session_id}", self.summarizer.run_session_summary, session_id
        )
        return {"submitted": True}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_open_session(self, token: str) -> SessionContext:
        ctx = await self.store.get_session_by_token(token)
        if ctx is None:
            raise NotFoundError("Invalid session token")
        if ctx.session.status == SessionStatus.COMPLETED.value:
            raise AlreadyCompletedError("This session has already been completed")
        return ctx

    async def _load_state(self, session_id: str) -> ConversationState | None:
        """Cache first, store as the fallback of record.

        A cached copy behind the stored one (a missed cache write) is dropped
        in favour of the store.
        """
        try:
            cached = await self.cache.get(session_id)
        except RedisError as exc:
            logger.warning("state_cache_read_failed", session_id=session_id, error=str(exc))
            cached = None
        stored = await self.store.load_conversation_state(session_id)
        if cached is None:
            return stored
        if stored is not None and stored.current_batch_number > cached.current_batch_number:
            logger.warning(
                "stale_cached_state_ignored",
                session_id=session_id,
                cached_batch=cached.current_batch_number,
                stored_batch=stored.current_batch_number,
            )
            await self._delete_cached_state(session_id)
            return stored
        return cached

    async def _require_state(self, session_id: str) -> ConversationState:
        state = await self._load_state(session_id)
        if state is None:
            raise StateMissingError("Session state not found. Please restart the session.")
        return state

    async def _save_state(self, state: ConversationState) -> None:
        """Store first (authoritative), then the cache mirror.

        Raises:
            AlreadyCompletedError: The session was completed while this round ran
        """
        if not await self.store.save_conversation_state(state.session_id, state):
            raise AlreadyCompletedError("This session has already been completed")
        try:
            await self.cache.put(state)
        except RedisError as exc:
            logger.warning("state_cache_write_failed", session_id=state.session_id, error=str(exc))
            # A surviving older entry would shadow the store on the next read
            await self._delete_cached_state(state.session_id)

    async def _delete_cached_state(self, session_id: str) -> None:
        try:
            await self.cache.delete(session_id)
        except RedisError as exc:
            logger.warning("state_cache_delete_failed", session_id=session_id, error=str(exc))
