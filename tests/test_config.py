"""
Tests for environment-driven configuration.
"""

import pytest

from cognify_server.core.config import (
    ChunkingConfig,
    CognifyConfig,
    GraphConfig,
    LLMConfig,
    StorageConfig,
)


class TestDefaults:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = CognifyConfig()

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.topic_temperature == 0.7
        assert config.llm.topic_max_tokens == 2000
        assert config.chunking.chunk_size == 100
        assert config.chunking.overlap == 20
        assert config.graph.max_input_chars == 50000
        assert config.graph.max_predicate_words == 3
        assert config.graph.bridge_relation == "includes"
        assert config.graph.stale_build_seconds == 600.0
        assert config.storage.backend == "memory"


class TestEnvironment:

    def test_section_prefixes(self, monkeypatch):
        monkeypatch.setenv("COGNIFY_LLM_PROVIDER", "litellm")
        monkeypatch.setenv("COGNIFY_LLM_MODEL", "claude-3-5-sonnet-20241022")
        monkeypatch.setenv("COGNIFY_CHUNKING_CHUNK_SIZE", "150")
        monkeypatch.setenv("COGNIFY_GRAPH_CHUNK_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("COGNIFY_STORAGE_BACKEND", "redis")

        config = CognifyConfig()

        assert config.llm.provider == "litellm"
        assert config.llm.model == "claude-3-5-sonnet-20241022"
        assert config.chunking.chunk_size == 150
        assert config.graph.chunk_timeout_seconds == 12.5
        assert config.storage.backend == "redis"

    def test_openai_key_alias(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

        assert LLMConfig().openai_api_key == "sk-from-env"


class TestValidation:

    def test_missing_openai_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = CognifyConfig(llm=LLMConfig(provider="openai"))

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            config.validate_api_keys()

    def test_litellm_needs_no_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        CognifyConfig(llm=LLMConfig(provider="litellm")).validate_api_keys()

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            ChunkingConfig(chunk_size=0)
        with pytest.raises(ValueError):
            ChunkingConfig(overlap=-1)
        with pytest.raises(ValueError):
            GraphConfig(max_predicate_words=0)
        with pytest.raises(ValueError):
            GraphConfig(stale_build_seconds=0)
        with pytest.raises(ValueError):
            StorageConfig(backend="sqlite")

    def test_full_overlap_is_allowed(self):
        config = ChunkingConfig(chunk_size=10, overlap=10)
        assert config.overlap == 10

    def test_repr_masks_key(self):
        config = CognifyConfig(llm=LLMConfig(openai_api_key="sk-secret-value-1234"))

        text = repr(config)
        assert "sk-secret-value-1234" not in text
        assert "1234" in text
