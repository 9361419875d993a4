"""
Tests for LLM clients and topic expansion. Provider SDK calls are mocked.
"""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from cognify_server.core.config import LLMConfig
from cognify_server.core.errors import InputError
from cognify_server.ingestion.topic import generate_source_text
from cognify_server.utils import create_llm_client
from cognify_server.utils.llm_base import LLMCompletionMixin, stop_after_client_retries
from cognify_server.utils.llm_litellm import LiteLLMClient
from cognify_server.utils.llm_openai import OpenAIClient

from conftest import create_mock_llm_client


def _chat_response(content):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    return response


def _stream_chunks(*deltas):
    chunks = []
    for text in deltas:
        chunk = Mock()
        chunk.choices = [Mock()]
        chunk.choices[0].delta.content = text
        chunks.append(chunk)

    async def stream():
        for chunk in chunks:
            yield chunk

    return stream()


class TestMixin:

    def test_build_messages(self):
        assert LLMCompletionMixin.build_messages("sys", "hi") == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        assert LLMCompletionMixin.build_messages(None, "hi") == [{"role": "user", "content": "hi"}]

    def test_hooks_must_be_implemented(self):
        with pytest.raises(NotImplementedError):
            LLMCompletionMixin().complete("sys", "hi")

    def test_retry_stop_follows_client_budget(self):
        client = Mock(max_retries=2)

        assert not stop_after_client_retries(Mock(args=(client,), attempt_number=2))
        assert stop_after_client_retries(Mock(args=(client,), attempt_number=3))
        assert stop_after_client_retries(Mock(args=(Mock(max_retries=0),), attempt_number=1))


class TestOpenAIClient:

    def test_complete(self):
        client = OpenAIClient(api_key="sk-test", model="gpt-4o-mini")
        client.client = MagicMock()
        client.client.chat.completions.create.return_value = _chat_response('[{"subject": "a"}]')

        result = client.complete("system", "user", temperature=0.2, max_tokens=100)

        assert result == '[{"subject": "a"}]'
        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    def test_no_retries_when_budget_is_zero(self):
        client = OpenAIClient(api_key="sk-test", max_retries=0)
        client.client = MagicMock()
        client.client.chat.completions.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(RuntimeError):
            client.complete("system", "user")

        assert client.client.chat.completions.create.call_count == 1

    @pytest.mark.asyncio
    async def test_acomplete_without_content_returns_empty_string(self):
        client = OpenAIClient(api_key="sk-test")
        client.async_client = MagicMock()
        client.async_client.chat.completions.create = AsyncMock(return_value=_chat_response(None))

        assert await client.acomplete(None, "user") == ""
        kwargs = client.async_client.chat.completions.create.call_args.kwargs
        assert "max_tokens" not in kwargs

    @pytest.mark.asyncio
    async def test_astream_yields_non_empty_deltas(self):
        client = OpenAIClient(api_key="sk-test")
        client.async_client = MagicMock()
        client.async_client.chat.completions.create = AsyncMock(
            return_value=_stream_chunks("Leaves ", None, "make food.")
        )

        deltas = [text async for text in client.astream("sys", "user", temperature=0.7, max_tokens=320)]

        assert deltas == ["Leaves ", "make food."]
        kwargs = client.async_client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 320

    @pytest.mark.asyncio
    async def test_astream_is_not_retried(self):
        client = OpenAIClient(api_key="sk-test")
        client.async_client = MagicMock()
        client.async_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("overloaded"))

        with pytest.raises(RuntimeError):
            async for _ in client.astream("sys", "user"):
                pass

        assert client.async_client.chat.completions.create.await_count == 1


class TestLiteLLMClient:

    @pytest.mark.asyncio
    async def test_acomplete_passes_timeout(self):
        client = LiteLLMClient(model="claude-3-5-sonnet-20241022", timeout=15)
        client.litellm = MagicMock()
        client.litellm.acompletion = AsyncMock(return_value=_chat_response("text"))

        assert await client.acomplete("sys", "user", max_tokens=50) == "text"
        kwargs = client.litellm.acompletion.call_args.kwargs
        assert kwargs["model"] == "claude-3-5-sonnet-20241022"
        assert kwargs["timeout"] == 15
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_astream_requests_streaming(self):
        client = LiteLLMClient(model="claude-3-5-sonnet-20241022")
        client.litellm = MagicMock()
        client.litellm.acompletion = AsyncMock(return_value=_stream_chunks("text"))

        assert [text async for text in client.astream(None, "user")] == ["text"]
        assert client.litellm.acompletion.call_args.kwargs["stream"] is True


class TestCreateLLMClient:

    def test_openai_requires_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError):
            create_llm_client(LLMConfig(provider="openai"))

    def test_openai(self):
        client = create_llm_client(LLMConfig(provider="openai", openai_api_key="sk-test", model="gpt-4o", max_retries=5))

        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o"
        assert client.max_retries == 5

    def test_litellm(self):
        client = create_llm_client(LLMConfig(provider="litellm", model="gemini/gemini-2.0-flash-exp"))

        assert isinstance(client, LiteLLMClient)
        assert client.model == "gemini/gemini-2.0-flash-exp"


class TestGenerateSourceText:

    @pytest.mark.asyncio
    async def test_uses_topic_settings(self):
        client = create_mock_llm_client(["Plants convert light into sugar."])
        config = LLMConfig(openai_api_key="sk-test", topic_temperature=0.5, topic_max_tokens=1000)

        text = await generate_source_text("  plants ", client, config)

        assert text == "Plants convert light into sugar."
        kwargs = client.acomplete.call_args.kwargs
        assert kwargs["system_prompt"] is None
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 1000
        assert "about plants," in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_empty_topic(self):
        with pytest.raises(InputError):
            await generate_source_text("  ", create_mock_llm_client(), LLMConfig())

    @pytest.mark.asyncio
    async def test_empty_generation(self):
        client = create_mock_llm_client([""])

        with pytest.raises(InputError):
            await generate_source_text("plants", client, LLMConfig())
