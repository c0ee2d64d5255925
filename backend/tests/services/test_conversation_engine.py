"""Tests for ConversationEngine.

Coverage:
- start(): fresh session gets batch 1, status in_progress, state in cache and store
- start(): unknown token -> NotFoundError, completed session -> AlreadyCompletedError
- start(): resumes from the store when the cache entry is gone
- start(): stale state (empty, incomplete batch on resume) restarts fresh
- Batch numbers come from the engine counter, never from the gateway
- submit_answers(): empty answers rejected, missing state -> StateMissingError
- submit_answers(): none-of-the-above wins over selections
- submit_answers(): cache outage does not fail the request
- finalize(): durable completion survives a summary failure
- A failed or stale cache write never loses or repeats answers
- Answers or a second finalize racing completion get AlreadyCompletedError
- Session status never moves backwards
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from discovery.core.exceptions import (
    AlreadyCompletedError,
    GatewayError,
    InvalidInputError,
    NotFoundError,
    StateMissingError,
)
from discovery.db.models import SessionStatus
from discovery.gateway.fake import GatewayFake
from discovery.schemas.quiz import ConversationState, QuizAnswer, QuizBatch
from discovery.services.conversation_engine import ConversationEngine
from discovery.services.summarization import SummarizationOrchestrator

pytestmark = pytest.mark.unit


class MiscountingGateway(GatewayFake):
    """Returns a sensible batch but always claims it is batch 999."""

    async def next_batch(self, state: ConversationState) -> QuizBatch:
        batch = await super().next_batch(state)
        batch.batch_number = 999
        return batch


def _engine_with(gateway, store, cache, tasks) -> ConversationEngine:
    return ConversationEngine(store, cache, gateway, SummarizationOrchestrator(store, gateway, tasks), tasks)


# ---------------------------------------------------------------------------
# start()
# ---------------------------------------------------------------------------


async def test_fresh_start_returns_first_batch_and_persists_state(
    conversation_engine, stakeholder_session, store, cache
):
    batch = await conversation_engine.start(stakeholder_session.token)

    assert batch.batch_number == 1
    assert 2 <= len(batch.questions) <= 4
    assert not batch.is_complete

    sid = str(stakeholder_session.id)
    ctx = await store.get_session(sid)
    assert ctx.session.status == SessionStatus.IN_PROGRESS

    stored = await store.load_conversation_state(sid)
    cached = await cache.get(sid)
    assert stored is not None and cached is not None
    assert stored.current_batch_number == 1
    assert stored.stakeholder_name == "Jane Doe"
    assert stored == cached


async def test_start_unknown_token_raises_not_found(conversation_engine):
    with pytest.raises(NotFoundError):
        await conversation_engine.start("f" * 64)


async def test_start_completed_session_raises_already_completed(
    conversation_engine, stakeholder_session, store
):
    await store.advance_session_status(stakeholder_session.id, SessionStatus.COMPLETED)

    with pytest.raises(AlreadyCompletedError):
        await conversation_engine.start(stakeholder_session.token)


async def test_start_resumes_from_store_when_cache_is_empty(
    conversation_engine, stakeholder_session, cache, store, make_answers
):
    first = await conversation_engine.start(stakeholder_session.token)
    await conversation_engine.submit_answers(stakeholder_session.token, make_answers(first))
    await cache.delete(str(stakeholder_session.id))

    resumed = await conversation_engine.start(stakeholder_session.token)

    assert resumed.batch_number == 2
    state = await store.load_conversation_state(stakeholder_session.id)
    assert len(state.all_answers) == len(first.questions)


async def test_stale_state_on_resume_restarts_fresh(stakeholder_session, store, cache, tasks):
    engine = _engine_with(GatewayFake(scenario="stale_state"), store, cache, tasks)
    await engine.start(stakeholder_session.token)

    batch = await engine.start(stakeholder_session.token)

    assert batch.questions, "stale state must never surface an empty batch"
    assert batch.batch_number == 1
    state = await store.load_conversation_state(stakeholder_session.id)
    assert state.current_batch_number == 1
    assert state.all_answers == []
    assert len(state.messages) == 1


# ---------------------------------------------------------------------------
# Batch numbering
# ---------------------------------------------------------------------------


async def test_engine_overwrites_gateway_batch_number(stakeholder_session, store, cache, tasks, make_answers):
    engine = _engine_with(MiscountingGateway(), store, cache, tasks)

    first = await engine.start(stakeholder_session.token)
    second = await engine.submit_answers(stakeholder_session.token, make_answers(first))

    assert first.batch_number == 1
    assert second.batch_number == 2
    state = await store.load_conversation_state(stakeholder_session.id)
    assert state.current_batch_number == 2
    assert '"batchNumber": 999' not in state.messages[-1].content


# ---------------------------------------------------------------------------
# submit_answers()
# ---------------------------------------------------------------------------


async def test_submit_without_answers_raises_invalid_input(conversation_engine, stakeholder_session):
    await conversation_engine.start(stakeholder_session.token)

    with pytest.raises(InvalidInputError):
        await conversation_engine.submit_answers(stakeholder_session.token, [])


async def test_submit_without_any_state_raises_state_missing(conversation_engine, stakeholder_session):
    answer = QuizAnswer(question_id="q1_1", question_text="Role?", selected_option_ids=["o1"])

    with pytest.raises(StateMissingError):
        await conversation_engine.submit_answers(stakeholder_session.token, [answer])


async def test_none_of_the_above_clears_selections(conversation_engine, stakeholder_session, store):
    batch = await conversation_engine.start(stakeholder_session.token)
    question = batch.questions[0]
    answer = QuizAnswer(
        question_id=question.id,
        question_text=question.text,
        selected_option_ids=[question.options[0].id],
        selected_labels=[question.options[0].label],
        none_of_the_above=True,
        custom_text="  We outsource this  ",
    )

    await conversation_engine.submit_answers(stakeholder_session.token, [answer])

    state = await store.load_conversation_state(stakeholder_session.id)
    saved = state.all_answers[0]
    assert saved.none_of_the_above is True
    assert saved.selected_option_ids == []
    assert saved.selected_labels == []
    assert saved.custom_text == "We outsource this"


async def test_cache_outage_does_not_fail_the_round(
    conversation_engine, stakeholder_session, store, make_answers
):
    first = await conversation_engine.start(stakeholder_session.token)
    conversation_engine.cache = AsyncMock()
    conversation_engine.cache.get.side_effect = RedisConnectionError("down")
    conversation_engine.cache.put.side_effect = RedisConnectionError("down")

    second = await conversation_engine.submit_answers(stakeholder_session.token, make_answers(first))

    assert second.batch_number == 2
    state = await store.load_conversation_state(stakeholder_session.id)
    assert state.current_batch_number == 2


# ---------------------------------------------------------------------------
# finalize()
# ---------------------------------------------------------------------------


async def test_finalize_is_durable_even_when_summary_fails(
    stakeholder_session, store, cache, tasks, make_answers
):
    engine = _engine_with(GatewayFake(scenario="summary_failure"), store, cache, tasks)
    first = await engine.start(stakeholder_session.token)
    second = await engine.submit_answers(stakeholder_session.token, make_answers(first))

    result = await engine.finalize(stakeholder_session.token, make_answers(second))

    assert result == {"submitted": True}
    assert tasks.spawned == [f"session-summary:{stakeholder_session.id}"]
    assert tasks.failures == []

    ctx = await store.get_session(stakeholder_session.id)
    assert ctx.session.status == SessionStatus.COMPLETED
    assert ctx.session.completed_at is not None
    assert ctx.session.conversation_state is None

    stored = await store.get_discovery_result(stakeholder_session.id)
    assert len(stored.answers_structured) == len(first.questions) + len(second.questions)
    assert stored.ai_summary == ""
    assert await cache.get(str(stakeholder_session.id)) is None


async def test_finalize_populates_summary_in_background(
    conversation_engine, stakeholder_session, store, make_answers
):
    first = await conversation_engine.start(stakeholder_session.token)
    await conversation_engine.finalize(stakeholder_session.token, make_answers(first))

    stored = await store.get_discovery_result(stakeholder_session.id)
    assert "Jane Doe" in stored.ai_summary
    assert stored.priority_level == "high"


async def test_finalize_without_state_raises_state_missing(conversation_engine, stakeholder_session):
    with pytest.raises(StateMissingError):
        await conversation_engine.finalize(stakeholder_session.token)


async def test_completed_session_rejects_further_answers(
    conversation_engine, stakeholder_session, make_answers
):
    first = await conversation_engine.start(stakeholder_session.token)
    await conversation_engine.finalize(stakeholder_session.token)

    with pytest.raises(AlreadyCompletedError):
        await conversation_engine.submit_answers(stakeholder_session.token, make_answers(first))


async def test_status_never_moves_backwards(conversation_engine, stakeholder_session, store):
    await conversation_engine.start(stakeholder_session.token)
    await conversation_engine.finalize(stakeholder_session.token)

    moved = await store.advance_session_status(stakeholder_session.id, SessionStatus.IN_PROGRESS)

    assert moved is False
    ctx = await store.get_session(stakeholder_session.id)
    assert ctx.session.status == SessionStatus.COMPLETED


# ---------------------------------------------------------------------------
# Dual-store consistency
# ---------------------------------------------------------------------------


class CompletingGateway(GatewayFake):
    """Finalizes the session while a later batch is being generated."""

    def __init__(self):
        super().__init__()
        self.engine: ConversationEngine | None = None
        self.token = ""

    async def next_batch(self, state: ConversationState) -> QuizBatch:
        if state.all_answers:
            await self.engine.finalize(self.token)
        return await super().next_batch(state)


class StaleThenFailingGateway(GatewayFake):
    """Stale resume, and fresh batches fail while ``fail_fresh`` is set."""

    def __init__(self):
        super().__init__(scenario="stale_state")
        self.fail_fresh = False

    async def next_batch(self, state: ConversationState) -> QuizBatch:
        if self.fail_fresh and not state.messages:
            raise GatewayError("Claude did not return a tool use response")
        return await super().next_batch(state)


def _question_ids(result) -> list[str]:
    return [answer["questionId"] for answer in result.answers_structured]


async def test_failed_cache_write_keeps_every_answer_once(
    conversation_engine, stakeholder_session, store, cache, make_answers, monkeypatch
):
    real_put = cache.put
    failures = []

    async def put_failing_once(state):
        if not failures:
            failures.append(state.current_batch_number)
            raise RedisConnectionError("down")
        await real_put(state)

    first = await conversation_engine.start(stakeholder_session.token)
    monkeypatch.setattr(cache, "put", put_failing_once)

    second = await conversation_engine.submit_answers(stakeholder_session.token, make_answers(first))
    third = await conversation_engine.submit_answers(stakeholder_session.token, make_answers(second))
    await conversation_engine.finalize(stakeholder_session.token, make_answers(third))

    assert failures == [2]
    assert (second.batch_number, third.batch_number) == (2, 3)
    result = await store.get_discovery_result(stakeholder_session.id)
    expected = [q.id for batch in (first, second, third) for q in batch.questions]
    assert _question_ids(result) == expected
    assert len(set(expected)) == len(expected)


async def test_cached_state_behind_the_store_is_ignored(
    conversation_engine, stakeholder_session, store, cache, make_answers
):
    first = await conversation_engine.start(stakeholder_session.token)
    sid = str(stakeholder_session.id)
    behind = await cache.get(sid)
    second = await conversation_engine.submit_answers(stakeholder_session.token, make_answers(first))
    # Redis came back holding the round-1 copy
    await cache.put(behind)

    third = await conversation_engine.submit_answers(stakeholder_session.token, make_answers(second))

    assert third.batch_number == 3
    state = await store.load_conversation_state(sid)
    assert [a.question_id for a in state.all_answers] == [q.id for b in (first, second) for q in b.questions]
    assert (await cache.get(sid)).current_batch_number == 3


async def test_answers_racing_completion_are_refused(stakeholder_session, store, cache, tasks, make_answers):
    gateway = CompletingGateway()
    engine = _engine_with(gateway, store, cache, tasks)
    gateway.engine, gateway.token = engine, stakeholder_session.token
    first = await engine.start(stakeholder_session.token)

    with pytest.raises(AlreadyCompletedError):
        await engine.submit_answers(stakeholder_session.token, make_answers(first))

    ctx = await store.get_session(stakeholder_session.id)
    assert ctx.session.status == SessionStatus.COMPLETED
    assert ctx.session.conversation_state is None
    assert await cache.get(str(stakeholder_session.id)) is None


async def test_second_finalize_is_refused_and_spawns_nothing(
    conversation_engine, stakeholder_session, store, tasks, make_answers, monkeypatch
):
    first = await conversation_engine.start(stakeholder_session.token)
    load_state = conversation_engine._require_state

    async def completed_meanwhile(session_id):
        state = await load_state(session_id)
        await store.complete_session(session_id, state)
        return state

    monkeypatch.setattr(conversation_engine, "_require_state", completed_meanwhile)

    with pytest.raises(AlreadyCompletedError):
        await conversation_engine.finalize(stakeholder_session.token, make_answers(first))

    assert tasks.spawned == []
    result = await store.get_discovery_result(stakeholder_session.id)
    assert result.answers_structured == []


async def test_stale_state_is_cleared_even_when_the_restart_fails(stakeholder_session, store, cache, tasks):
    gateway = StaleThenFailingGateway()
    engine = _engine_with(gateway, store, cache, tasks)
    await engine.start(stakeholder_session.token)
    gateway.fail_fresh = True

    with pytest.raises(GatewayError):
        await engine.start(stakeholder_session.token)

    sid = str(stakeholder_session.id)
    assert await store.load_conversation_state(sid) is None
    assert await cache.get(sid) is None

    gateway.fail_fresh = False
    batch = await engine.start(stakeholder_session.token)
    assert batch.batch_number == 1
    assert batch.questions
