"""
Final connectivity pass over an accumulated graph.

Guarantees that every node other than the root has an incoming edge and
that the whole graph is one connected component containing the root, by
adding ``root -> node`` bridging edges where extraction left gaps.
"""

import logging
from collections import defaultdict, deque
from typing import Dict, List, Optional, Set, Tuple

from cognify_server.core.models import GraphEdge, GraphNode
from cognify_server.utils.normalization import generate_node_id, normalize_entity

from .accumulator import GraphAccumulator

logger = logging.getLogger(__name__)

BRIDGE_RELATION = "includes"
BRIDGE_EDGE_TYPE = "root"
ROOT_GROUP = "root"


def select_root(
    accumulator: GraphAccumulator,
    root_label: Optional[str] = None,
) -> Tuple[Optional[str], Optional[GraphNode]]:
    """
    Choose the connectivity anchor.

    An explicit root label that matches an extracted node selects that node;
    one that matches nothing becomes a new synthetic node in the ``root``
    group. Without a label the first node discovered in the run is the root.

    Returns:
        Tuple of (root_id, synthesized_node). synthesized_node is set only
        when a node was created here. Both are None for an empty graph.
    """
    if root_label:
        label = normalize_entity(root_label)
        if label:
            root_id = generate_node_id(label)
            if accumulator.has_node(root_id):
                return root_id, None
            if len(accumulator) == 0:
                return None, None
            node, _ = accumulator.add_node(label, group=ROOT_GROUP)
            logger.info(f"Synthesized root node '{label}' ({node.id})")
            return node.id, node

    return accumulator.first_node_id(), None


def _adjacency(edges: List[GraphEdge]) -> Dict[str, Set[str]]:
    neighbours: Dict[str, Set[str]] = defaultdict(set)
    for edge in edges:
        neighbours[edge.source].add(edge.target)
        neighbours[edge.target].add(edge.source)
    return neighbours


def _expand(start: str, neighbours: Dict[str, Set[str]], reached: Set[str]) -> None:
    queue = deque([start])
    reached.add(start)
    while queue:
        current = queue.popleft()
        for neighbour in neighbours.get(current, ()):
            if neighbour not in reached:
                reached.add(neighbour)
                queue.append(neighbour)


def enforce_connectivity(
    accumulator: GraphAccumulator,
    root_id: str,
    relation: str = BRIDGE_RELATION,
) -> List[GraphEdge]:
    """
    Add bridging edges so the graph is a single component anchored at root.

    Pass 1 links the root to every other node without an incoming edge.
    Pass 2 walks the graph from the root ignoring edge direction and links
    the root to one node of each component still out of reach.

    Args:
        accumulator: Graph to repair in place
        root_id: ID of the anchor node
        relation: Relation label of bridging edges

    Returns:
        Bridging edges added, in insertion order (empty if already connected)
    """
    if not accumulator.has_node(root_id):
        raise ValueError(f"Root node {root_id} is not in the graph")

    bridges: List[GraphEdge] = []

    def bridge(node_id: str) -> None:
        edge = accumulator.add_edge(root_id, node_id, relation, edge_type=BRIDGE_EDGE_TYPE)
        if edge is not None:
            bridges.append(edge)

    has_incoming = {edge.target for edge in accumulator.edges.values()}
    for node_id in list(accumulator.nodes):
        if node_id != root_id and node_id not in has_incoming:
            bridge(node_id)

    neighbours = _adjacency(list(accumulator.edges.values()))
    reached: Set[str] = set()
    _expand(root_id, neighbours, reached)

    for node_id in list(accumulator.nodes):
        if node_id in reached:
            continue
        bridge(node_id)
        neighbours[root_id].add(node_id)
        neighbours[node_id].add(root_id)
        _expand(node_id, neighbours, reached)

    if bridges:
        logger.info(f"Added {len(bridges)} bridging edges to root {root_id}")
    return bridges
