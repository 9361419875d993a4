"""
Shared fixtures for Cognify tests.

Model calls are always mocked; every other component runs for real.
"""

import json
from typing import List, Sequence, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from cognify_server.core.config import ChunkingConfig, CognifyConfig, GraphConfig, LLMConfig
from cognify_server.storage.graph_store import InMemoryGraphStore


def triples_json(triples: Sequence[Tuple[str, str, str]]) -> str:
    """Model-style JSON array for (subject, predicate, object) tuples."""
    return json.dumps([
        {"subject": s, "predicate": p, "object": o} for s, p, o in triples
    ])


def create_mock_llm_client(responses: List = None):
    """
    Mock client exposing complete()/acomplete().

    Each item in ``responses`` is returned (or raised, for exceptions) by
    successive acomplete calls.
    """
    mock_client = Mock()
    mock_client.model = "gpt-4o-mini"
    mock_client.acomplete = AsyncMock(side_effect=list(responses or []))
    mock_client.complete = Mock(side_effect=list(responses or []))
    return mock_client


def create_streaming_llm_client(deltas: List[str], error: Exception = None):
    """Mock client whose astream() yields ``deltas`` and then raises ``error`` if given."""
    mock_client = create_mock_llm_client()

    async def astream(**kwargs):
        for text in deltas:
            yield text
        if error is not None:
            raise error

    mock_client.astream = Mock(side_effect=astream)
    return mock_client


@pytest.fixture
def store():
    return InMemoryGraphStore()


@pytest.fixture
def small_chunk_config():
    """Three words per chunk, no overlap: six words make two chunks."""
    return CognifyConfig(
        llm=LLMConfig(openai_api_key="sk-test"),
        chunking=ChunkingConfig(chunk_size=3, overlap=0),
        graph=GraphConfig(chunk_timeout_seconds=5),
    )
