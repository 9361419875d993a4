"""
Streaming explanations of single nodes of a finished graph.

The first request for a node asks the model for an explanation grounded in
the node's relationships, streams it delta by delta and caches the full text.
Later requests replay the cached text as a single content event.
"""

import logging
from typing import AsyncIterator, List, Optional, Tuple

from cognify_server.core.config import LLMConfig
from cognify_server.core.errors import GraphNotReadyError, LLMUnavailableError, NodeNotFoundError
from cognify_server.core.models import (
    ContentEvent,
    DetailCompleteEvent,
    DetailEvent,
    ErrorEvent,
    GraphNode,
    GraphRecord,
    GraphSnapshot,
    GraphStatus,
    IncomingRelation,
    NodeDetail,
    NodeRelationships,
    OutgoingRelation,
    StatusEvent,
)
from cognify_server.ingestion.triple_extraction.utils import load_prompt, render_template
from cognify_server.storage.graph_store import GraphStore

logger = logging.getLogger(__name__)

DETAIL_SYSTEM_PROMPT_FILE = "node_detail_system.txt"
DETAIL_INPUT_PROMPT_FILE = "node_detail_input.txt"

GENERATING_MESSAGE = "Generating detailed explanation..."
UNKNOWN_LABEL = "Unknown"

# Keeps prompts for very large graphs bounded
MAX_PROMPT_CONCEPTS = 100


def find_relationships(snapshot: GraphSnapshot, node_id: str) -> NodeRelationships:
    """Incoming and outgoing edges of a node, with endpoints resolved to labels."""
    labels = {node.id: node.label for node in snapshot.nodes}
    incoming = [
        IncomingRelation(source=labels.get(edge.source, UNKNOWN_LABEL), relation=edge.relation)
        for edge in snapshot.edges
        if edge.target == node_id
    ]
    outgoing = [
        OutgoingRelation(relation=edge.relation, target=labels.get(edge.target, UNKNOWN_LABEL))
        for edge in snapshot.edges
        if edge.source == node_id
    ]
    return NodeRelationships(incoming=incoming, outgoing=outgoing)


def build_detail_prompts(
    node_label: str,
    graph_name: str,
    concepts: List[str],
    relationships: NodeRelationships,
) -> Tuple[str, str]:
    """
    Build system and user prompts for one node explanation.

    Args:
        node_label: Label of the node to explain
        graph_name: Name of the graph the node belongs to
        concepts: Labels of the graph's other nodes
        relationships: The node's edges resolved to labels

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    incoming = "\n".join(f"- {r.source} {r.relation} {node_label}" for r in relationships.incoming)
    outgoing = "\n".join(f"- {node_label} {r.relation} {r.target}" for r in relationships.outgoing)

    system_prompt = load_prompt(DETAIL_SYSTEM_PROMPT_FILE).strip()
    user_prompt = render_template(
        load_prompt(DETAIL_INPUT_PROMPT_FILE),
        node_label=node_label,
        graph_name=graph_name,
        concepts=", ".join(concepts[:MAX_PROMPT_CONCEPTS]) or "none",
        incoming=incoming,
        outgoing=outgoing,
    )
    return system_prompt, user_prompt


async def replay_node_detail(detail: NodeDetail) -> AsyncIterator[DetailEvent]:
    """Re-emit a cached explanation without touching the model."""
    yield ContentEvent(text=detail.content)
    yield DetailCompleteEvent(relationships=detail.relationships)


class NodeDetailStreamer:
    """
    Serves node explanations for finished graphs.

    Two concurrent first requests for the same node may both generate; the
    store keeps whichever explanation is saved first.
    """

    def __init__(
        self,
        store: GraphStore,
        llm_client,
        config: Optional[LLMConfig] = None,
    ):
        self.store = store
        self.llm_client = llm_client
        self.config = config or LLMConfig()

    async def stream(self, record: GraphRecord, node_id: str) -> AsyncIterator[DetailEvent]:
        """
        Open the explanation stream for one node.

        Returns:
            Async iterator of detail events ending with complete or error

        Raises:
            GraphNotReadyError: If the graph has no finished snapshot
            NodeNotFoundError: If the snapshot has no node with this ID
            LLMUnavailableError: If nothing is cached and no model is configured
        """
        cached = await self.store.get_node_detail(record.id, node_id)
        if cached is not None:
            logger.info(f"Replaying cached details for node {node_id} of graph {record.id}")
            return replay_node_detail(cached)

        snapshot = record.graph_json
        if record.status != GraphStatus.COMPLETE or snapshot is None:
            raise GraphNotReadyError(f"Graph {record.id} has not finished building")

        node = next((n for n in snapshot.nodes if n.id == node_id), None)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id} not found in graph {record.id}")

        if self.llm_client is None:
            raise LLMUnavailableError("LLM client not configured")

        return self._generate(record, node, snapshot)

    async def _generate(
        self,
        record: GraphRecord,
        node: GraphNode,
        snapshot: GraphSnapshot,
    ) -> AsyncIterator[DetailEvent]:
        relationships = find_relationships(snapshot, node.id)
        concepts = [n.label for n in snapshot.nodes if n.id != node.id]
        system_prompt, user_prompt = build_detail_prompts(
            node.label, record.name, concepts, relationships
        )

        yield StatusEvent(message=GENERATING_MESSAGE)

        parts: List[str] = []
        try:
            async for text in self.llm_client.astream(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=self.config.detail_temperature,
                max_tokens=self.config.detail_max_tokens,
            ):
                parts.append(text)
                yield ContentEvent(text=text)

            content = "".join(parts)
            if not content.strip():
                logger.warning(f"Model returned no details for node {node.id} of graph {record.id}")
                yield ErrorEvent(message="Failed to generate node details")
                return

            await self.store.save_node_detail(NodeDetail(
                graph_id=record.id,
                node_id=node.id,
                node_label=node.label,
                content=content,
                relationships=relationships,
            ))

        except Exception as e:
            logger.error(
                f"Failed to generate details for node {node.id} of graph {record.id}: {e}",
                exc_info=True,
            )
            yield ErrorEvent(message=str(e) or "Failed to generate node details")
            return

        logger.info(f"Generated {len(content)} chars of details for node {node.id} of graph {record.id}")
        yield DetailCompleteEvent(relationships=relationships)
