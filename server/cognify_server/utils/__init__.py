"""
Shared utilities: chunking, normalization, JSON repair and LLM clients.
"""

import logging

from cognify_server.core.config import LLMConfig
from cognify_server.utils.llm_base import LLMCompletionMixin

logger = logging.getLogger(__name__)


def create_llm_client(config: LLMConfig) -> LLMCompletionMixin:
    """
    Create the LLM client for the configured provider.

    Args:
        config: LLM configuration section

    Returns:
        Client exposing complete()/acomplete()

    Raises:
        ValueError: If the provider is unknown or its API key is missing
    """
    if config.provider == "openai":
        if not config.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when using llm provider='openai'")
        from cognify_server.utils.llm_openai import OpenAIClient
        return OpenAIClient(
            api_key=config.openai_api_key,
            model=config.model,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )
    if config.provider == "litellm":
        from cognify_server.utils.llm_litellm import LiteLLMClient
        return LiteLLMClient(
            model=config.model,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )
    raise ValueError(f"Unknown LLM provider: {config.provider}")


__all__ = ["create_llm_client", "LLMCompletionMixin"]
