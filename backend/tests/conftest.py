"""Shared test fixtures for all test groups.

Everything runs in-process: SQLite (aiosqlite) for the store, fakeredis for
the cache, GatewayFake for the LLM and InlineTaskSpawner for background work.
"""

import pytest
from fakeredis import aioredis

from discovery.core.tasks import InlineTaskSpawner
from discovery.db.base import build_engine, create_schema, session_factory_for
from discovery.gateway.fake import GatewayFake
from discovery.repositories.cache import ConversationCache
from discovery.repositories.store import DiscoveryStore
from discovery.schemas.quiz import ConversationState, QuizAnswer, QuizBatch
from discovery.services.conversation_engine import ConversationEngine
from discovery.services.summarization import SummarizationOrchestrator
from discovery.storage.blob import InMemoryBlobStorage

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
ACME_CONTEXT = "Acme is rolling out a new field-service platform to 400 technicians."


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DB_URL)
    await create_schema(engine)
    yield session_factory_for(engine)
    await engine.dispose()


@pytest.fixture
async def redis_client():
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def store(session_factory) -> DiscoveryStore:
    return DiscoveryStore(session_factory)


@pytest.fixture
def cache(redis_client) -> ConversationCache:
    return ConversationCache(redis_client, ttl_seconds=7200)


@pytest.fixture
def gateway() -> GatewayFake:
    """GatewayFake with happy_path scenario (default)."""
    return GatewayFake(scenario="happy_path")


@pytest.fixture
def tasks() -> InlineTaskSpawner:
    return InlineTaskSpawner()


@pytest.fixture
def blobs() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def summarizer(store, gateway, tasks) -> SummarizationOrchestrator:
    return SummarizationOrchestrator(store, gateway, tasks)


@pytest.fixture
def conversation_engine(store, cache, gateway, summarizer, tasks) -> ConversationEngine:
    return ConversationEngine(store, cache, gateway, summarizer, tasks)


@pytest.fixture
async def engagement(store):
    return await store.create_engagement("Acme Rollout", "Field-service rollout", ACME_CONTEXT)


@pytest.fixture
async def stakeholder_session(store, engagement):
    return await store.create_session(
        engagement.id,
        "ab" * 32,
        "Jane Doe",
        stakeholder_email="jane@acme.test",
        stakeholder_role="Operations Director",
    )


def answers_for(batch: QuizBatch) -> list[QuizAnswer]:
    """Pick the first option of every question in ``batch``."""
    return [
        QuizAnswer(
            question_id=q.id,
            question_text=q.text,
            selected_option_ids=[q.options[0].id],
            selected_labels=[q.options[0].label],
        )
        for q in batch.questions
    ]


async def complete_with_answers(store, engagement, name: str, token: str, answer_count: int = 2):
    """Create a session and durably complete it, bypassing the engine."""
    session = await store.create_session(engagement.id, token, name, stakeholder_role="Manager")
    state = ConversationState(
        session_id=str(session.id),
        engagement_context=engagement.context or "",
        stakeholder_name=name,
        stakeholder_role="Manager",
        all_answers=[
            QuizAnswer(
                question_id=f"q1_{i}",
                question_text=f"Question {i}?",
                selected_option_ids=["o1"],
                selected_labels=["Option one"],
            )
            for i in range(1, answer_count + 1)
        ],
    )
    await store.complete_session(session.id, state)
    return session


@pytest.fixture
def make_answers():
    return answers_for


@pytest.fixture
def completed_session(store, engagement):
    """Factory: ``await completed_session("Name", token)`` creates a completed session."""

    async def _create(name: str, token: str, answer_count: int = 2):
        return await complete_with_answers(store, engagement, name, token, answer_count)

    return _create
