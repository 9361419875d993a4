"""
Run-scoped accumulation of extracted triples into one graph.

A single GraphAccumulator instance receives the triples of every chunk in a
run. Nodes are deduplicated by normalized label (content-derived ID) and
edges by (source, relation, target), so the same fact extracted from two
overlapping chunks yields one node pair and one edge.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from cognify_server.core.models import GraphEdge, GraphNode, GraphSnapshot, Triple
from cognify_server.utils.normalization import (
    generate_node_id,
    limit_predicate_length,
    normalize_entity,
)

logger = logging.getLogger(__name__)

EdgeKey = Tuple[str, str, str]


@dataclass
class TripleMerge:
    """What a single triple added to the graph."""
    new_nodes: List[GraphNode] = field(default_factory=list)
    new_edge: Optional[GraphEdge] = None

    @property
    def changed(self) -> bool:
        return bool(self.new_nodes) or self.new_edge is not None


class GraphAccumulator:
    """
    Insertion-ordered node and edge maps for one graph build.

    Not safe for concurrent mutation; one producer owns it for the run.
    """

    def __init__(self, max_predicate_words: int = 3):
        self.max_predicate_words = max_predicate_words
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: Dict[EdgeKey, GraphEdge] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def has_edge(self, source: str, relation: str, target: str) -> bool:
        return (source, relation, target) in self.edges

    def add_node(self, label: str, group: str = "extracted") -> Tuple[GraphNode, bool]:
        """
        Get or create the node for an already-normalized label.

        Returns:
            Tuple of (node, created)
        """
        node_id = generate_node_id(label)
        existing = self.nodes.get(node_id)
        if existing is not None:
            return existing, False

        node = GraphNode(id=node_id, label=label, group=group)
        self.nodes[node_id] = node
        return node, True

    def add_edge(
        self,
        source: str,
        target: str,
        relation: str,
        edge_type: str = "extracted",
        confidence: Optional[float] = None,
    ) -> Optional[GraphEdge]:
        """
        Insert an edge unless one with the same (source, relation, target) exists.

        Returns:
            The new edge, or None if it was a duplicate
        """
        key = (source, relation, target)
        if key in self.edges:
            return None

        edge = GraphEdge(
            source=source,
            target=target,
            relation=relation,
            type=edge_type,
            confidence=confidence,
        )
        self.edges[key] = edge
        return edge

    def normalize_predicate(self, predicate: str) -> str:
        # Stopwords stay: "is part of" and "part" are different relations
        normalized = " ".join(predicate.lower().split())
        return limit_predicate_length(normalized, self.max_predicate_words)

    def add_triple(self, triple: Triple) -> TripleMerge:
        """
        Merge one triple into the graph.

        Args:
            triple: Raw triple from the extractor

        Returns:
            TripleMerge listing newly created nodes (subject first) and the new
            edge, if any. Duplicate triples return an empty TripleMerge.
        """
        merge = TripleMerge()

        subject_label = normalize_entity(triple.subject)
        object_label = normalize_entity(triple.object)
        relation = self.normalize_predicate(triple.predicate)

        if not subject_label or not object_label or not relation:
            logger.debug(f"Dropping triple with empty normalized term: {triple}")
            return merge

        if generate_node_id(subject_label) == generate_node_id(object_label):
            logger.debug(f"Dropping self-referencing triple: {triple}")
            return merge

        subject_node, created = self.add_node(subject_label)
        if created:
            merge.new_nodes.append(subject_node)

        object_node, created = self.add_node(object_label)
        if created:
            merge.new_nodes.append(object_node)

        merge.new_edge = self.add_edge(subject_node.id, object_node.id, relation)
        return merge

    def first_node_id(self) -> Optional[str]:
        return next(iter(self.nodes), None)

    def snapshot(self) -> GraphSnapshot:
        """Copy of the current graph."""
        return GraphSnapshot(
            nodes=list(self.nodes.values()),
            edges=list(self.edges.values()),
        )
