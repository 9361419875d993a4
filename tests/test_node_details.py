"""
Tests for node detail explanations: relationship lookup, prompts, and the
generate-then-replay stream against the in-memory store.
"""

from unittest.mock import AsyncMock, patch

import pytest

from cognify_server.core.config import LLMConfig
from cognify_server.core.errors import GraphNotReadyError, LLMUnavailableError, NodeNotFoundError
from cognify_server.core.models import (
    GraphEdge,
    GraphNode,
    GraphRecord,
    GraphSnapshot,
    GraphStatus,
    NodeDetail,
)
from cognify_server.streaming.node_details import (
    NodeDetailStreamer,
    build_detail_prompts,
    find_relationships,
)

from conftest import create_streaming_llm_client

SNAPSHOT = GraphSnapshot(
    nodes=[
        GraphNode(id="n_plant", label="plant", group="root"),
        GraphNode(id="n_leaf", label="leaf"),
        GraphNode(id="n_light", label="light"),
    ],
    edges=[
        GraphEdge(source="n_plant", target="n_leaf", relation="has"),
        GraphEdge(source="n_leaf", target="n_light", relation="absorbs"),
        GraphEdge(source="n_ghost", target="n_leaf", relation="touches"),
    ],
)


async def _finished_graph(store, **kwargs) -> GraphRecord:
    kwargs.setdefault("user_id", "user_1")
    kwargs.setdefault("name", "Plants")
    kwargs.setdefault("status", GraphStatus.COMPLETE)
    kwargs.setdefault("graph_json", SNAPSHOT)
    record = GraphRecord(**kwargs)
    await store.create(record)
    return record


async def _drain(events) -> list:
    return [event async for event in events]


class TestRelationships:

    def test_incoming_and_outgoing_resolve_labels(self):
        relationships = find_relationships(SNAPSHOT, "n_leaf")

        assert [(r.source, r.relation) for r in relationships.incoming] == [
            ("plant", "has"),
            ("Unknown", "touches"),
        ]
        assert [(r.relation, r.target) for r in relationships.outgoing] == [("absorbs", "light")]

    def test_isolated_node(self):
        relationships = find_relationships(SNAPSHOT, "n_missing")

        assert relationships.incoming == []
        assert relationships.outgoing == []

    def test_prompt_mentions_relations_and_concepts(self):
        relationships = find_relationships(SNAPSHOT, "n_leaf")

        system_prompt, user_prompt = build_detail_prompts("leaf", "Plants", ["plant", "light"], relationships)

        assert "tutor" in system_prompt
        assert 'Explain the concept "leaf"' in user_prompt
        assert '"Plants"' in user_prompt
        assert "Other concepts in this graph: plant, light" in user_prompt
        assert "- plant has leaf" in user_prompt
        assert "- leaf absorbs light" in user_prompt

    def test_prompt_omits_empty_relation_sections(self):
        relationships = find_relationships(SNAPSHOT, "n_plant")

        _, user_prompt = build_detail_prompts("plant", "Plants", ["leaf", "light"], relationships)

        assert "Relationships pointing to" not in user_prompt
        assert "- plant has leaf" in user_prompt


class TestNodeDetailStreamer:

    @pytest.mark.asyncio
    async def test_generates_streams_and_caches(self, store):
        record = await _finished_graph(store)
        client = create_streaming_llm_client(["A leaf ", "captures light."])
        streamer = NodeDetailStreamer(store, client, LLMConfig(detail_temperature=0.7, detail_max_tokens=320))

        events = await _drain(await streamer.stream(record, "n_leaf"))

        assert [e.event for e in events] == ["status", "content", "content", "complete"]
        assert events[0].message == "Generating detailed explanation..."
        assert [e.text for e in events[1:3]] == ["A leaf ", "captures light."]
        assert [r.target for r in events[-1].relationships.outgoing] == ["light"]

        cached = await store.get_node_detail(record.id, "n_leaf")
        assert cached.content == "A leaf captures light."
        assert cached.node_label == "leaf"

        kwargs = client.astream.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 320

    @pytest.mark.asyncio
    async def test_cached_detail_is_replayed_without_model(self, store):
        record = await _finished_graph(store)
        await store.save_node_detail(NodeDetail(
            graph_id=record.id, node_id="n_leaf", node_label="leaf", content="Cached text.",
        ))
        client = create_streaming_llm_client(["unused"])
        streamer = NodeDetailStreamer(store, client)

        events = await _drain(await streamer.stream(record, "n_leaf"))

        assert [e.event for e in events] == ["content", "complete"]
        assert events[0].text == "Cached text."
        client.astream.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_request_replays_first_generation(self, store):
        record = await _finished_graph(store)
        client = create_streaming_llm_client(["Leaves feed the plant."])
        streamer = NodeDetailStreamer(store, client)

        await _drain(await streamer.stream(record, "n_leaf"))
        replay = await _drain(await streamer.stream(record, "n_leaf"))

        assert [e.event for e in replay] == ["content", "complete"]
        assert replay[0].text == "Leaves feed the plant."
        assert client.astream.call_count == 1

    @pytest.mark.asyncio
    async def test_model_failure_emits_error_and_caches_nothing(self, store):
        record = await _finished_graph(store)
        client = create_streaming_llm_client(["partial "], error=RuntimeError("stream reset"))
        streamer = NodeDetailStreamer(store, client)

        events = await _drain(await streamer.stream(record, "n_leaf"))

        assert [e.event for e in events] == ["status", "content", "error"]
        assert events[-1].message == "stream reset"
        assert await store.get_node_detail(record.id, "n_leaf") is None

    @pytest.mark.asyncio
    async def test_empty_explanation_is_an_error(self, store):
        record = await _finished_graph(store)
        streamer = NodeDetailStreamer(store, create_streaming_llm_client([]))

        events = await _drain(await streamer.stream(record, "n_leaf"))

        assert [e.event for e in events] == ["status", "error"]
        assert await store.get_node_detail(record.id, "n_leaf") is None

    @pytest.mark.asyncio
    async def test_cache_write_failure_emits_error(self, store):
        record = await _finished_graph(store)
        streamer = NodeDetailStreamer(store, create_streaming_llm_client(["text"]))

        with patch.object(store, "save_node_detail", AsyncMock(side_effect=OSError("disk full"))):
            events = await _drain(await streamer.stream(record, "n_leaf"))

        assert events[-1].event == "error"
        assert events[-1].message == "disk full"

    @pytest.mark.asyncio
    async def test_unfinished_graph_is_rejected(self, store):
        record = await _finished_graph(store, status=GraphStatus.BUILDING, graph_json=None)
        streamer = NodeDetailStreamer(store, create_streaming_llm_client(["text"]))

        with pytest.raises(GraphNotReadyError):
            await streamer.stream(record, "n_leaf")

    @pytest.mark.asyncio
    async def test_unknown_node_is_rejected(self, store):
        record = await _finished_graph(store)
        streamer = NodeDetailStreamer(store, create_streaming_llm_client(["text"]))

        with pytest.raises(NodeNotFoundError):
            await streamer.stream(record, "n_missing")

    @pytest.mark.asyncio
    async def test_missing_model_only_matters_without_cache(self, store):
        record = await _finished_graph(store)
        streamer = NodeDetailStreamer(store, None)

        with pytest.raises(LLMUnavailableError):
            await streamer.stream(record, "n_leaf")

        await store.save_node_detail(NodeDetail(
            graph_id=record.id, node_id="n_leaf", node_label="leaf", content="Cached text.",
        ))
        events = await _drain(await streamer.stream(record, "n_leaf"))
        assert events[0].text == "Cached text."
