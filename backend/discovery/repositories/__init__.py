"""Store (durable) and cache (fast) adapters, kept as separate interfaces."""

from discovery.repositories.cache import AdminTokenStore, ConfigStore, ConversationCache
from discovery.repositories.store import DiscoveryStore, SessionContext

__all__ = [
    "AdminTokenStore",
    "ConfigStore",
    "ConversationCache",
    "DiscoveryStore",
    "SessionContext",
]
