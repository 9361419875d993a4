"""
LiteLLM client adapter for unified LLM access.

Same completion interface as OpenAIClient, routed through LiteLLM so that
triple extraction and topic expansion can run on any provider it supports.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from tenacity import retry, wait_exponential

from .llm_base import LLMCompletionMixin, stop_after_client_retries

logger = logging.getLogger(__name__)


class LiteLLMClient(LLMCompletionMixin):
    """
    Completion client backed by LiteLLM.

    The provider is inferred from the model name; credentials come from the
    provider's usual environment variables. Every request carries a timeout
    so a stalled provider cannot hold a chunk past its deadline.

    Examples:
        # OpenAI
        client = LiteLLMClient(model="gpt-4o-mini")

        # Anthropic
        client = LiteLLMClient(model="claude-3-5-sonnet-20241022")

        # Gemini
        client = LiteLLMClient(model="gemini/gemini-2.0-flash-exp")
    """

    def __init__(
        self,
        model: str,
        max_retries: int = 2,
        timeout: int = 30,
    ):
        """
        Initialize LiteLLM client.

        Args:
            model: Model name in LiteLLM format (e.g., 'gpt-4o-mini', 'claude-3-5-sonnet-20241022')
            max_retries: Retries after a failed API call (0 disables retrying)
            timeout: Timeout in seconds for API calls
        """
        import litellm
        self.litellm = litellm

        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout

        litellm.drop_params = True   # Auto-drop unsupported params per provider

        logger.info(f"Initialized LiteLLMClient with model: {model}")

    def _build_kwargs(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "timeout": self.timeout,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return kwargs

    @retry(
        stop=stop_after_client_retries,
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def _call_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """
        LiteLLM-specific API call.

        Returns:
            Response text (LiteLLM returns OpenAI-compatible format)
        """
        try:
            response = self.litellm.completion(
                **self._build_kwargs(messages, temperature, max_tokens)
            )
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"Error in LiteLLM API call: {e}")
            raise

    @retry(
        stop=stop_after_client_retries,
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    async def _acall_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """
        Async LiteLLM-specific API call.

        Returns:
            Response text (LiteLLM returns OpenAI-compatible format)
        """
        try:
            response = await self.litellm.acompletion(
                **self._build_kwargs(messages, temperature, max_tokens)
            )
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"Error in async LiteLLM API call: {e}")
            raise

    async def _astream_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> AsyncIterator[str]:
        """Stream text deltas (LiteLLM yields OpenAI-style chunks)."""
        response = await self.litellm.acompletion(
            **self._build_kwargs(messages, temperature, max_tokens),
            stream=True,
        )
        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    def __repr__(self) -> str:
        """String representation."""
        return f"LiteLLMClient(model='{self.model}')"
