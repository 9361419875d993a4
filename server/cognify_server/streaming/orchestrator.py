"""
Streaming orchestration of graph builds.

A stream request either replays a finished graph from its persisted snapshot
or claims the record and starts a GraphRun: a producer task that drives the
GraphBuilder, pushes events into a queue, persists the snapshot once and
finishes with exactly one terminal event. The caller drains the queue.

The producer outlives its consumer: a client that disconnects does not stop
the build, which still persists normally.

A run refreshes its record's lease (``updated_at``) on every status event.
A building record whose lease has expired was left behind by a process that
died mid-build, and the next stream request takes it over.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional

from cognify_server.core.config import CognifyConfig
from cognify_server.core.errors import (
    BuildInProgressError,
    GraphNotFoundError,
    PersistenceError,
)
from cognify_server.core.models import (
    TERMINAL_EVENTS,
    CompleteEvent,
    EdgeEvent,
    ErrorEvent,
    GraphRecord,
    GraphSnapshot,
    GraphStatus,
    NodeEvent,
    SourceType,
    StatusEvent,
    StreamEvent,
)
from cognify_server.ingestion.pipeline import GraphBuilder
from cognify_server.storage.graph_store import GraphStore

logger = logging.getLogger(__name__)

CACHED_GRAPH_MESSAGE = "Loading cached graph..."
CANCELLED_MESSAGE = "Graph build was cancelled"


async def replay_snapshot(snapshot: GraphSnapshot) -> AsyncIterator[StreamEvent]:
    """Re-emit a persisted graph in stream order without touching the model."""
    yield StatusEvent(message=CACHED_GRAPH_MESSAGE)
    for node in snapshot.nodes:
        yield NodeEvent(node=node)
    for edge in snapshot.edges:
        yield EdgeEvent(edge=edge)
    yield CompleteEvent(summary=snapshot.summary())


class GraphRun:
    """
    One in-flight build of one graph.

    The producer task is the only writer of the builder's accumulator and of
    the record while the run is active.
    """

    def __init__(self, record: GraphRecord, builder: GraphBuilder, store: GraphStore):
        self.record = record
        self.builder = builder
        self.store = store
        self.queue: asyncio.Queue = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None
        self.finished = False

    @property
    def graph_id(self) -> str:
        return self.record.id

    def start(self) -> asyncio.Task:
        self.task = asyncio.create_task(self.run(), name=f"graph-run-{self.graph_id}")
        self.task.add_done_callback(self._on_done)
        return self.task

    def _emit(self, event: StreamEvent) -> None:
        if self.finished:
            return
        self.queue.put_nowait(event)
        if event.event in TERMINAL_EVENTS:
            self.finished = True

    def _on_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never reaches run()
        if not self.finished:
            self._emit(ErrorEvent(message=CANCELLED_MESSAGE))

    async def mark_error(self) -> None:
        """Set the record to error, logging rather than raising on failure."""
        try:
            await self.store.set_status(self.graph_id, GraphStatus.ERROR)
        except Exception as e:
            logger.error(f"Failed to mark graph {self.graph_id} as error: {e}")

    async def _refresh_lease(self) -> None:
        try:
            await self.store.touch(self.graph_id)
        except Exception as e:
            logger.warning(f"Failed to refresh build lease of graph {self.graph_id}: {e}")

    async def _persist(self, snapshot: GraphSnapshot) -> None:
        try:
            await self.store.save_snapshot(self.graph_id, snapshot)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save graph {self.graph_id}: {e}") from e

    async def run(self) -> None:
        logger.info(f"Starting graph build {self.graph_id}")
        try:
            async for event in self.builder.build(self.record.input_text):
                self._emit(event)
                if event.event == "status":
                    await self._refresh_lease()

            snapshot = self.builder.snapshot()
            await self._persist(snapshot)
            logger.info(
                f"Graph {self.graph_id} complete: "
                f"{len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges"
            )
            self._emit(CompleteEvent(summary=snapshot.summary()))

        except asyncio.CancelledError:
            logger.warning(f"Graph build {self.graph_id} cancelled")
            self._emit(ErrorEvent(message=CANCELLED_MESSAGE))
            raise

        except Exception as e:
            logger.error(f"Graph build {self.graph_id} failed: {e}", exc_info=True)
            await self.mark_error()
            self._emit(ErrorEvent(
                message=str(e) or "An unexpected error occurred during graph generation"
            ))

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Drain the run's events up to and including the terminal one."""
        while True:
            event = await self.queue.get()
            yield event
            if event.event in TERMINAL_EVENTS:
                return


class GraphStreamOrchestrator:
    """
    Entry point for streaming graph builds.

    Keeps a strong reference to every in-flight run until its task finishes.
    """

    def __init__(
        self,
        store: GraphStore,
        llm_client,
        config: Optional[CognifyConfig] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Graph record storage
            llm_client: LLM client shared by all runs
            config: Server configuration (defaults from environment)
        """
        self.store = store
        self.llm_client = llm_client
        self.config = config or CognifyConfig()
        self._runs: Dict[str, GraphRun] = {}

    def _builder_for(self, record: GraphRecord) -> GraphBuilder:
        root_label = None
        if record.source_type == SourceType.TOPIC:
            root_label = record.input_meta.get("topic")
        return GraphBuilder(
            llm_client=self.llm_client,
            chunking=self.config.chunking,
            graph=self.config.graph,
            llm=self.config.llm,
            root_label=root_label,
        )

    def active_runs(self) -> List[str]:
        return list(self._runs)

    def _forget(self, run: GraphRun) -> None:
        # A retry may already have replaced this run
        if self._runs.get(run.graph_id) is run:
            del self._runs[run.graph_id]

    async def stream(self, graph_id: str) -> AsyncIterator[StreamEvent]:
        """
        Open the event stream for a graph.

        Admission happens here, before any event is produced, so callers can
        map the errors below to responses before starting a stream.

        Returns:
            Async iterator of stream events ending with complete or error

        Raises:
            GraphNotFoundError: If no record exists
            BuildInProgressError: If the graph is already being built and its
                lease has not gone stale
        """
        record = await self.store.get(graph_id)
        if record is None:
            raise GraphNotFoundError(f"Graph {graph_id} not found")

        if record.status == GraphStatus.COMPLETE:
            logger.info(f"Replaying cached graph {graph_id}")
            return replay_snapshot(record.graph_json or GraphSnapshot())

        live = self._runs.get(graph_id)
        if live is not None and not live.finished:
            raise BuildInProgressError(f"Graph {graph_id} is already being built")

        claimed = await self.store.begin_build(
            graph_id, stale_after_seconds=self.config.graph.stale_build_seconds
        )
        if not claimed:
            # Lost the claim: another run is building or just finished
            current = await self.store.get(graph_id)
            if current is not None and current.status == GraphStatus.COMPLETE:
                return replay_snapshot(current.graph_json or GraphSnapshot())
            raise BuildInProgressError(f"Graph {graph_id} is already being built")

        run = GraphRun(record, self._builder_for(record), self.store)
        self._runs[graph_id] = run
        task = run.start()
        task.add_done_callback(lambda _: self._forget(run))
        return run.events()

    async def wait_idle(self) -> None:
        """Wait for every in-flight run to finish."""
        tasks = [run.task for run in self._runs.values() if run.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight runs and mark their records as error."""
        runs = list(self._runs.values())
        if not runs:
            return

        logger.info(f"Cancelling {len(runs)} in-flight graph builds")
        for run in runs:
            run.task.cancel()
        await asyncio.gather(*(run.task for run in runs), return_exceptions=True)

        for run in runs:
            if run.task.cancelled():
                await run.mark_error()
