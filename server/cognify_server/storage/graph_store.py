"""
Storage of graph records.

The pipeline only needs a narrow contract: read the source text, move the
status through pending -> building -> complete/error, and write the final
snapshot in one atomic update. Explanations generated for single nodes of a
finished graph are cached beside the record. GraphStore defines that contract;
InMemoryGraphStore implements it for single-process use and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple

from cognify_server.core.errors import GraphNotFoundError
from cognify_server.core.models import GraphRecord, GraphSnapshot, GraphStatus, NodeDetail, utc_now

logger = logging.getLogger(__name__)

# Statuses from which a new build may start
BUILDABLE_STATUSES = (GraphStatus.PENDING, GraphStatus.ERROR)


def is_stale_build(record: GraphRecord, stale_after_seconds: Optional[float]) -> bool:
    """
    Whether a building record has gone without a lease refresh for longer
    than ``stale_after_seconds``. Such a record belongs to a run that died
    with its process. None disables the check.
    """
    if record.status != GraphStatus.BUILDING or stale_after_seconds is None:
        return False
    return utc_now() - record.updated_at > timedelta(seconds=stale_after_seconds)


class GraphStore(ABC):
    """Async persistence contract for graph records."""

    @abstractmethod
    async def create(self, record: GraphRecord) -> GraphRecord:
        """Store a new record."""

    @abstractmethod
    async def get(self, graph_id: str) -> Optional[GraphRecord]:
        """Fetch a record, or None if it does not exist."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[GraphRecord]:
        """A user's records, newest first."""

    @abstractmethod
    async def delete(self, graph_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""

    @abstractmethod
    async def get_node_detail(self, graph_id: str, node_id: str) -> Optional[NodeDetail]:
        """Cached explanation of a node, or None."""

    @abstractmethod
    async def save_node_detail(self, detail: NodeDetail) -> NodeDetail:
        """
        Cache a node explanation unless one exists already.

        Returns:
            The cached detail; the first writer wins
        """

    @abstractmethod
    async def _update(
        self,
        graph_id: str,
        mutate: Callable[[GraphRecord], bool],
    ) -> bool:
        """
        Atomically apply ``mutate`` to a record.

        ``mutate`` edits the record in place and returns False to abort
        without writing.

        Raises:
            GraphNotFoundError: If the record does not exist
        """

    async def has_building_graph(
        self,
        user_id: str,
        stale_after_seconds: Optional[float] = None,
    ) -> bool:
        """Whether the user has any graph currently building. Stale builds do not count."""
        records = await self.list_for_user(user_id)
        return any(
            r.status == GraphStatus.BUILDING and not is_stale_build(r, stale_after_seconds)
            for r in records
        )

    async def begin_build(
        self,
        graph_id: str,
        stale_after_seconds: Optional[float] = None,
    ) -> bool:
        """
        Claim a record for building.

        Moves pending or error records to building in one compare-and-set.
        A building record whose lease is older than ``stale_after_seconds``
        is taken over as well.

        Returns:
            True if this caller now owns the build, False if the record is
            complete or held by a live build
        """
        def claim(record: GraphRecord) -> bool:
            if is_stale_build(record, stale_after_seconds):
                logger.warning(
                    f"Taking over stale build of graph {graph_id} "
                    f"(last refreshed {record.updated_at.isoformat()})"
                )
            elif record.status not in BUILDABLE_STATUSES:
                return False
            record.status = GraphStatus.BUILDING
            record.updated_at = utc_now()
            return True

        return await self._update(graph_id, claim)

    async def touch(self, graph_id: str) -> bool:
        """
        Refresh the lease of a building record.

        Returns:
            False if the record is no longer building
        """
        def refresh(record: GraphRecord) -> bool:
            if record.status != GraphStatus.BUILDING:
                return False
            record.updated_at = utc_now()
            return True

        return await self._update(graph_id, refresh)

    async def set_status(self, graph_id: str, status: GraphStatus) -> None:
        """Overwrite a record's status."""
        def apply(record: GraphRecord) -> bool:
            record.status = status
            record.updated_at = utc_now()
            return True

        await self._update(graph_id, apply)

    async def save_snapshot(self, graph_id: str, snapshot: GraphSnapshot) -> None:
        """Persist the final graph and mark the record complete in one write."""
        def apply(record: GraphRecord) -> bool:
            record.graph_json = snapshot
            record.status = GraphStatus.COMPLETE
            record.updated_at = utc_now()
            return True

        await self._update(graph_id, apply)

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryGraphStore(GraphStore):
    """Process-local store guarded by an asyncio lock."""

    def __init__(self):
        self._records: Dict[str, GraphRecord] = {}
        self._details: Dict[Tuple[str, str], NodeDetail] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: GraphRecord) -> GraphRecord:
        async with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        logger.info(f"Created graph {record.id} for user {record.user_id}")
        return record

    async def get(self, graph_id: str) -> Optional[GraphRecord]:
        async with self._lock:
            record = self._records.get(graph_id)
            return record.model_copy(deep=True) if record else None

    async def list_for_user(self, user_id: str) -> List[GraphRecord]:
        async with self._lock:
            records = [r.model_copy(deep=True) for r in self._records.values() if r.user_id == user_id]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def delete(self, graph_id: str) -> bool:
        async with self._lock:
            for key in [k for k in self._details if k[0] == graph_id]:
                del self._details[key]
            return self._records.pop(graph_id, None) is not None

    async def get_node_detail(self, graph_id: str, node_id: str) -> Optional[NodeDetail]:
        async with self._lock:
            detail = self._details.get((graph_id, node_id))
            return detail.model_copy(deep=True) if detail else None

    async def save_node_detail(self, detail: NodeDetail) -> NodeDetail:
        async with self._lock:
            if detail.graph_id not in self._records:
                raise GraphNotFoundError(f"Graph {detail.graph_id} not found")
            stored = self._details.setdefault((detail.graph_id, detail.node_id), detail.model_copy(deep=True))
            return stored.model_copy(deep=True)

    async def _update(
        self,
        graph_id: str,
        mutate: Callable[[GraphRecord], bool],
    ) -> bool:
        async with self._lock:
            record = self._records.get(graph_id)
            if record is None:
                raise GraphNotFoundError(f"Graph {graph_id} not found")
            updated = record.model_copy(deep=True)
            if not mutate(updated):
                return False
            self._records[graph_id] = updated
            return True
