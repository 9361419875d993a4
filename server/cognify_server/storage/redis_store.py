"""
Redis-backed graph record storage.

Each record is one JSON document, so the final snapshot and the complete
status land in a single SET. Updates use WATCH/MULTI so status transitions
are compare-and-set across server processes. Node explanations live in one
hash per graph, keyed by node ID.
"""

import logging
from typing import Callable, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from cognify_server.core.errors import GraphNotFoundError, PersistenceError
from cognify_server.core.models import GraphRecord, NodeDetail

from .graph_store import GraphStore

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379"
MAX_WATCH_RETRIES = 10


class RedisGraphStore(GraphStore):
    """Graph records in Redis with a per-user index set."""

    def __init__(self, url: Optional[str] = None, key_prefix: str = "cognify"):
        """Initialize Redis store.

        Args:
            url: Redis connection URL
            key_prefix: Prefix for all keys written by this store
        """
        self.url = url or DEFAULT_REDIS_URL
        self.key_prefix = key_prefix
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        """Lazy connection to Redis."""
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
            logger.info(f"Connected to Redis at {self.url}")
        return self._client

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _graph_key(self, graph_id: str) -> str:
        return f"{self.key_prefix}:graph:{graph_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self.key_prefix}:user:{user_id}:graphs"

    def _details_key(self, graph_id: str) -> str:
        return f"{self.key_prefix}:graph:{graph_id}:details"

    async def create(self, record: GraphRecord) -> GraphRecord:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._graph_key(record.id), record.model_dump_json())
                pipe.sadd(self._user_key(record.user_id), record.id)
                await pipe.execute()
        except RedisError as e:
            raise PersistenceError(f"Failed to create graph {record.id}: {e}") from e

        logger.info(f"Created graph {record.id} for user {record.user_id}")
        return record

    async def get(self, graph_id: str) -> Optional[GraphRecord]:
        try:
            raw = await self.client.get(self._graph_key(graph_id))
        except RedisError as e:
            raise PersistenceError(f"Failed to read graph {graph_id}: {e}") from e
        return GraphRecord.model_validate_json(raw) if raw else None

    async def list_for_user(self, user_id: str) -> List[GraphRecord]:
        try:
            graph_ids = await self.client.smembers(self._user_key(user_id))
            if not graph_ids:
                return []
            raws = await self.client.mget([self._graph_key(gid) for gid in graph_ids])
        except RedisError as e:
            raise PersistenceError(f"Failed to list graphs for user {user_id}: {e}") from e

        records = [GraphRecord.model_validate_json(raw) for raw in raws if raw]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def delete(self, graph_id: str) -> bool:
        record = await self.get(graph_id)
        if record is None:
            return False
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(self._graph_key(graph_id))
                pipe.delete(self._details_key(graph_id))
                pipe.srem(self._user_key(record.user_id), graph_id)
                await pipe.execute()
        except RedisError as e:
            raise PersistenceError(f"Failed to delete graph {graph_id}: {e}") from e
        return True

    async def get_node_detail(self, graph_id: str, node_id: str) -> Optional[NodeDetail]:
        try:
            raw = await self.client.hget(self._details_key(graph_id), node_id)
        except RedisError as e:
            raise PersistenceError(f"Failed to read node {node_id} of graph {graph_id}: {e}") from e
        return NodeDetail.model_validate_json(raw) if raw else None

    async def save_node_detail(self, detail: NodeDetail) -> NodeDetail:
        key = self._details_key(detail.graph_id)
        try:
            if not await self.client.exists(self._graph_key(detail.graph_id)):
                raise GraphNotFoundError(f"Graph {detail.graph_id} not found")
            if await self.client.hsetnx(key, detail.node_id, detail.model_dump_json()):
                return detail
            raw = await self.client.hget(key, detail.node_id)
        except RedisError as e:
            raise PersistenceError(
                f"Failed to save node {detail.node_id} of graph {detail.graph_id}: {e}"
            ) from e

        logger.debug(f"Node {detail.node_id} of graph {detail.graph_id} already cached")
        return NodeDetail.model_validate_json(raw) if raw else detail

    async def _update(
        self,
        graph_id: str,
        mutate: Callable[[GraphRecord], bool],
    ) -> bool:
        key = self._graph_key(graph_id)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for _ in range(MAX_WATCH_RETRIES):
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        if raw is None:
                            await pipe.unwatch()
                            raise GraphNotFoundError(f"Graph {graph_id} not found")

                        record = GraphRecord.model_validate_json(raw)
                        if not mutate(record):
                            await pipe.unwatch()
                            return False

                        pipe.multi()
                        pipe.set(key, record.model_dump_json())
                        await pipe.execute()
                        return True
                    except WatchError:
                        logger.debug(f"Concurrent update on graph {graph_id}, retrying")
                        continue
        except RedisError as e:
            raise PersistenceError(f"Failed to update graph {graph_id}: {e}") from e

        raise PersistenceError(f"Gave up updating graph {graph_id} after {MAX_WATCH_RETRIES} conflicts")
