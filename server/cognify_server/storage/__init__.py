"""
Storage backends for graph records.
"""

from cognify_server.core.config import StorageConfig

from .graph_store import GraphStore, InMemoryGraphStore


def create_graph_store(config: StorageConfig) -> GraphStore:
    """Create the configured store backend."""
    if config.backend == "redis":
        from .redis_store import RedisGraphStore
        return RedisGraphStore(url=config.redis_url, key_prefix=config.key_prefix)
    return InMemoryGraphStore()


__all__ = ["GraphStore", "InMemoryGraphStore", "create_graph_store"]
