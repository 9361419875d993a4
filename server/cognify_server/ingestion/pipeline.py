"""
GraphBuilder - drives text-to-graph extraction as an incremental process.

Chunks the source text, extracts triples chunk by chunk, merges them into a
run-scoped GraphAccumulator and yields stream events as soon as nodes and
edges are discovered. Persistence is left to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from cognify_server.core.config import ChunkingConfig, GraphConfig, LLMConfig
from cognify_server.core.errors import ChunkExtractionError, InputError
from cognify_server.core.models import (
    EdgeEvent,
    GraphSnapshot,
    NodeEvent,
    StatusEvent,
    StreamEvent,
)
from cognify_server.utils.chunking import chunk_words

from .accumulator import GraphAccumulator
from .connectivity import enforce_connectivity, select_root
from .triple_extraction import extract_triples

logger = logging.getLogger(__name__)


@dataclass
class BuildStats:
    """Per-run counters, filled in while building."""
    chunks_total: int = 0
    chunks_succeeded: int = 0
    failed_chunks: List[int] = field(default_factory=list)
    triples_seen: int = 0
    bridging_edges: int = 0
    root_id: Optional[str] = None


class GraphBuilder:
    """
    One graph build over one source text.

    Each instance owns its accumulator; create a new builder per run.
    """

    def __init__(
        self,
        llm_client,
        chunking: Optional[ChunkingConfig] = None,
        graph: Optional[GraphConfig] = None,
        llm: Optional[LLMConfig] = None,
        root_label: Optional[str] = None,
    ):
        """
        Initialize GraphBuilder.

        Args:
            llm_client: LLM client with an acomplete method
            chunking: Chunking settings (defaults from environment)
            graph: Graph construction settings
            llm: LLM call settings (temperature, max tokens)
            root_label: Optional name of the root concept (e.g. the topic)
        """
        self.llm_client = llm_client
        self.chunking = chunking or ChunkingConfig()
        self.graph = graph or GraphConfig()
        self.llm = llm or LLMConfig()
        self.root_label = root_label

        self.accumulator = GraphAccumulator(max_predicate_words=self.graph.max_predicate_words)
        self.stats = BuildStats()

    async def _extract_chunk(self, chunk_text: str, chunk_index: int):
        try:
            return await asyncio.wait_for(
                extract_triples(
                    chunk=chunk_text,
                    llm_client=self.llm_client,
                    max_predicate_words=self.graph.max_predicate_words,
                    root_concept=self.root_label,
                    temperature=self.llm.extraction_temperature,
                    max_tokens=self.llm.extraction_max_tokens,
                    chunk_index=chunk_index,
                ),
                timeout=self.graph.chunk_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ChunkExtractionError(
                f"Timed out after {self.graph.chunk_timeout_seconds}s",
                chunk_index=chunk_index,
            ) from e

    async def build(self, text: Optional[str]) -> AsyncIterator[StreamEvent]:
        """
        Build a graph from text, yielding events as it grows.

        Yields one status event per chunk followed by node/edge events for
        what that chunk added, then a status event and any bridging events
        from the connectivity pass. Failed chunks are logged and skipped.

        Raises:
            InputError: If the text is empty or whitespace-only
        """
        if not text or not text.strip():
            raise InputError("No input text found for graph")

        chunks = chunk_words(
            text,
            chunk_size=self.chunking.chunk_size,
            overlap=self.chunking.overlap,
            max_chunks=self.chunking.max_chunks,
        )
        self.stats.chunks_total = len(chunks)
        logger.info(f"Building graph from {chunks.total_words} words in {len(chunks)} chunks")

        for chunk in chunks:
            yield StatusEvent(
                message=f"Processing chunk {chunk.chunk_index + 1} of {self.stats.chunks_total}..."
            )

            try:
                triples = await self._extract_chunk(chunk.text, chunk.chunk_index)
            except ChunkExtractionError as e:
                logger.warning(f"Skipping chunk {chunk.chunk_index + 1}/{self.stats.chunks_total}: {e}")
                self.stats.failed_chunks.append(chunk.chunk_index)
                continue

            self.stats.chunks_succeeded += 1
            self.stats.triples_seen += len(triples)

            for triple in triples:
                merge = self.accumulator.add_triple(triple)
                for node in merge.new_nodes:
                    yield NodeEvent(node=node)
                if merge.new_edge is not None:
                    yield EdgeEvent(edge=merge.new_edge)

            logger.debug(
                f"Chunk {chunk.chunk_index + 1}: {len(triples)} triples, "
                f"total {len(self.accumulator.nodes)} nodes, {len(self.accumulator.edges)} edges"
            )

        if self.stats.failed_chunks:
            logger.warning(
                f"{len(self.stats.failed_chunks)} of {self.stats.chunks_total} chunks failed extraction"
            )

        root_id, synthesized = select_root(self.accumulator, self.root_label)
        self.stats.root_id = root_id
        if root_id is None:
            logger.warning("No nodes extracted, graph is empty")
            return

        bridges = enforce_connectivity(self.accumulator, root_id, relation=self.graph.bridge_relation)
        self.stats.bridging_edges = len(bridges)

        if synthesized is not None or bridges:
            yield StatusEvent(message="Connecting graph...")
            if synthesized is not None:
                yield NodeEvent(node=synthesized)
            for edge in bridges:
                yield EdgeEvent(edge=edge)

        logger.info(
            f"Graph built: {len(self.accumulator.nodes)} nodes, {len(self.accumulator.edges)} edges "
            f"({self.stats.chunks_succeeded}/{self.stats.chunks_total} chunks succeeded)"
        )

    def snapshot(self) -> GraphSnapshot:
        return self.accumulator.snapshot()
