"""FastAPI dependencies wiring stores, gateway and services per request.

Tests swap collaborators through ``app.dependency_overrides`` (usually
get_gateway, get_blob_storage and get_task_spawner).
"""

from fastapi import Depends, Request

from discovery.core.config import get_settings
from discovery.core.tasks import TaskSpawner
from discovery.db.base import get_session_factory
from discovery.db.redis import get_redis
from discovery.gateway.fake import GatewayFake
from discovery.gateway.service import AnthropicGateway, DiscoveryGateway
from discovery.repositories.cache import ConfigStore, ConversationCache
from discovery.repositories.store import DiscoveryStore
from discovery.services.conversation_engine import ConversationEngine
from discovery.services.document_extraction import DocumentExtractionService
from discovery.services.engagement_service import EngagementService
from discovery.services.summarization import SummarizationOrchestrator
from discovery.storage.blob import BlobStorage


def get_store() -> DiscoveryStore:
    return DiscoveryStore(get_session_factory())


def get_cache() -> ConversationCache:
    return ConversationCache(get_redis())


def get_config_store() -> ConfigStore:
    return ConfigStore(get_redis())


def build_gateway() -> DiscoveryGateway:
    """AnthropicGateway when ANTHROPIC_API_KEY is set, GatewayFake otherwise (local dev)."""
    if get_settings().anthropic_api_key:
        return AnthropicGateway()
    return GatewayFake()


def get_gateway(request: Request) -> DiscoveryGateway:
    return request.app.state.gateway


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


def get_task_spawner(request: Request) -> TaskSpawner:
    return request.app.state.task_spawner


def get_summarizer(
    store: DiscoveryStore = Depends(get_store),
    gateway: DiscoveryGateway = Depends(get_gateway),
    tasks: TaskSpawner = Depends(get_task_spawner),
) -> SummarizationOrchestrator:
    return SummarizationOrchestrator(store, gateway, tasks)


def get_conversation_engine(
    store: DiscoveryStore = Depends(get_store),
    cache: ConversationCache = Depends(get_cache),
    gateway: DiscoveryGateway = Depends(get_gateway),
    summarizer: SummarizationOrchestrator = Depends(get_summarizer),
    tasks: TaskSpawner = Depends(get_task_spawner),
) -> ConversationEngine:
    return ConversationEngine(store, cache, gateway, summarizer, tasks)


def get_engagement_service(
    store: DiscoveryStore = Depends(get_store),
    gateway: DiscoveryGateway = Depends(get_gateway),
    blobs: BlobStorage = Depends(get_blob_storage),
) -> EngagementService:
    return EngagementService(store, gateway, blobs)


def get_extraction_service(
    store: DiscoveryStore = Depends(get_store),
    blobs: BlobStorage = Depends(get_blob_storage),
    gateway: DiscoveryGateway = Depends(get_gateway),
    tasks: TaskSpawner = Depends(get_task_spawner),
) -> DocumentExtractionService:
    return DocumentExtractionService(store, blobs, gateway, tasks)
