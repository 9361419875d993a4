"""
Tests for root selection and the connectivity pass.
"""

from collections import defaultdict, deque

import pytest

from cognify_server.core.models import Triple
from cognify_server.ingestion.accumulator import GraphAccumulator
from cognify_server.ingestion.connectivity import enforce_connectivity, select_root
from cognify_server.utils.normalization import generate_node_id


def _build(*triples) -> GraphAccumulator:
    acc = GraphAccumulator()
    for s, p, o in triples:
        acc.add_triple(Triple(subject=s, predicate=p, object=o))
    return acc


def _reachable_undirected(acc: GraphAccumulator, root_id: str) -> set:
    neighbours = defaultdict(set)
    for edge in acc.edges.values():
        neighbours[edge.source].add(edge.target)
        neighbours[edge.target].add(edge.source)
    seen = {root_id}
    queue = deque([root_id])
    while queue:
        for n in neighbours[queue.popleft()]:
            if n not in seen:
                seen.add(n)
                queue.append(n)
    return seen


def _assert_connected(acc: GraphAccumulator, root_id: str) -> None:
    targets = {e.target for e in acc.edges.values()}
    for node_id in acc.nodes:
        if node_id != root_id:
            assert node_id in targets, f"{acc.nodes[node_id].label} has no incoming edge"
    assert _reachable_undirected(acc, root_id) == set(acc.nodes)


class TestSelectRoot:

    def test_defaults_to_first_node(self):
        acc = _build(("photosynthesis", "uses", "light"), ("leaf", "has", "stomata"))

        root_id, synthesized = select_root(acc)

        assert root_id == generate_node_id("photosynthesis")
        assert synthesized is None

    def test_matching_label_selects_existing_node(self):
        acc = _build(("leaf", "performs", "photosynthesis"))

        root_id, synthesized = select_root(acc, "Photosynthesis")

        assert root_id == generate_node_id("photosynthesis")
        assert synthesized is None

    def test_unknown_label_synthesizes_root(self):
        acc = _build(("leaf", "has", "stomata"))

        root_id, synthesized = select_root(acc, "Plant Biology")

        assert synthesized is not None
        assert synthesized.label == "plant biology"
        assert synthesized.group == "root"
        assert root_id == synthesized.id
        assert acc.has_node(root_id)

    def test_empty_graph_has_no_root(self):
        assert select_root(GraphAccumulator()) == (None, None)
        assert select_root(GraphAccumulator(), "topic") == (None, None)


class TestEnforceConnectivity:

    def test_connected_graph_is_unchanged(self):
        acc = _build(("apple", "r", "banana"), ("banana", "s", "cherry"))

        assert enforce_connectivity(acc, generate_node_id("apple")) == []
        assert len(acc.edges) == 2

    def test_orphans_are_bridged_from_root(self):
        acc = _build(("apple", "r", "banana"), ("cherry", "s", "date"))
        root_id = generate_node_id("apple")

        bridges = enforce_connectivity(acc, root_id)

        assert [(e.source, e.target) for e in bridges] == [(root_id, generate_node_id("cherry"))]
        assert bridges[0].relation == "includes"
        assert bridges[0].type == "root"
        _assert_connected(acc, root_id)

    def test_cycle_disconnected_from_root_is_bridged(self):
        # cherry and date both have incoming edges but cannot be reached from apple
        acc = _build(("apple", "r", "banana"), ("cherry", "s", "date"), ("date", "t", "cherry"))
        root_id = generate_node_id("apple")

        bridges = enforce_connectivity(acc, root_id)

        assert len(bridges) == 1
        assert bridges[0].target == generate_node_id("cherry")
        _assert_connected(acc, root_id)

    def test_incoming_edge_into_root_needs_no_bridge_for_root(self):
        acc = _build(("x", "r", "apple"), ("apple", "s", "y"))
        root_id = generate_node_id("apple")

        bridges = enforce_connectivity(acc, root_id)

        assert [e.target for e in bridges] == [generate_node_id("x")]
        _assert_connected(acc, root_id)

    def test_custom_relation(self):
        acc = _build(("apple", "r", "banana"), ("cherry", "s", "date"))

        bridges = enforce_connectivity(acc, generate_node_id("apple"), relation="covers")

        assert all(e.relation == "covers" for e in bridges)

    def test_second_pass_adds_nothing(self):
        acc = _build(("apple", "r", "banana"), ("cherry", "s", "date"), ("elderberry", "t", "fig"))
        root_id = generate_node_id("apple")
        enforce_connectivity(acc, root_id)

        assert enforce_connectivity(acc, root_id) == []

    def test_synthesized_root_connects_everything(self):
        acc = _build(("leaf", "has", "stomata"), ("root", "absorbs", "water"))
        root_id, _ = select_root(acc, "plants")

        bridges = enforce_connectivity(acc, root_id)

        assert {acc.nodes[e.target].label for e in bridges} == {"leaf", "root"}
        _assert_connected(acc, root_id)

    def test_missing_root_raises(self):
        acc = _build(("apple", "r", "banana"))

        with pytest.raises(ValueError):
            enforce_connectivity(acc, "0000000000000000")
