"""
LLM client wrapper for OpenAI models.
Handles retries and error handling around chat completions.
"""

import logging
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAI
from tenacity import retry, wait_exponential

from .llm_base import LLMCompletionMixin, stop_after_client_retries

logger = logging.getLogger(__name__)


class OpenAIClient(LLMCompletionMixin):
    """
    Wrapper for OpenAI chat completions with retry logic and error handling.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_retries: int = 2,
        timeout: int = 30,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model name (e.g., 'gpt-4o-mini', 'gpt-4o')
            max_retries: Retries after a failed API call (0 disables retrying)
            timeout: Timeout in seconds for API calls
        """
        self.client = OpenAI(api_key=api_key, timeout=timeout)
        self.async_client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout

        logger.info(f"Initialized OpenAIClient with model: {model}")

    def _build_kwargs(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> dict:
        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
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
        OpenAI-specific API call.

        Args:
            messages: List of message dictionaries
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Response text
        """
        try:
            response = self.client.chat.completions.create(
                **self._build_kwargs(messages, temperature, max_tokens)
            )
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"Error in OpenAI API call: {e}")
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
        Async OpenAI-specific API call.

        Args:
            messages: List of message dictionaries
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Response text
        """
        try:
            response = await self.async_client.chat.completions.create(
                **self._build_kwargs(messages, temperature, max_tokens)
            )
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"Error in async OpenAI API call: {e}")
            raise

    async def _astream_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> AsyncIterator[str]:
        """Stream text deltas from an OpenAI chat completion."""
        stream = await self.async_client.chat.completions.create(
            **self._build_kwargs(messages, temperature, max_tokens),
            stream=True,
        )
        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    def __repr__(self) -> str:
        """String representation."""
        return f"OpenAIClient(model='{self.model}')"
