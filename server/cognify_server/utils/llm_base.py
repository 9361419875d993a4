"""
Base utilities for LLM clients.

Provides the provider-independent completion interface used by the graph
pipeline: a system prompt and a user prompt in, response text out.
"""

import logging
from typing import AsyncIterator, Dict, List, Optional

from tenacity import RetryCallState

logger = logging.getLogger(__name__)


def stop_after_client_retries(retry_state: RetryCallState) -> bool:
    """
    tenacity stop strategy bounded by the client's own ``max_retries``.

    Applied to client methods, so the first positional argument is the client.
    """
    client = retry_state.args[0]
    return retry_state.attempt_number > client.max_retries


class LLMCompletionMixin:
    """
    Mixin class providing the completion interface for LLM clients.

    Each provider's client class inherits from this mixin and implements
    ``_call_api`` / ``_acall_api`` with its own API calling logic.
    """

    @staticmethod
    def build_messages(system_prompt: Optional[str], user_prompt: str) -> List[Dict[str, str]]:
        """
        Build chat messages for a single-turn completion.

        Args:
            system_prompt: Optional system instructions
            user_prompt: User message

        Returns:
            List of message dictionaries with 'role' and 'content'
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def _call_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """
        Provider-specific API call.

        Override in subclass for provider-specific API call.

        Returns:
            Response text
        """
        raise NotImplementedError("Subclass must implement _call_api")

    async def _acall_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """
        Async provider-specific API call.

        Override in subclass for async provider-specific API call.

        Returns:
            Response text
        """
        raise NotImplementedError("Subclass must implement _acall_api")

    def _astream_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> AsyncIterator[str]:
        """
        Provider-specific streaming call.

        Override in subclass with an async generator yielding text deltas.
        """
        raise NotImplementedError("Subclass must implement _astream_api")

    def complete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate a text completion.

        Args:
            system_prompt: System instructions (may be None)
            user_prompt: User message
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate

        Returns:
            Response text ("" if the model returned no content)
        """
        messages = self.build_messages(system_prompt, user_prompt)
        try:
            content = self._call_api(messages, temperature, max_tokens)
        except Exception as e:
            logger.error(f"Error generating completion: {e}")
            raise
        logger.debug(f"Completion: {len(content or '')} chars")
        return content or ""

    async def acomplete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Async version of complete.

        Args:
            system_prompt: System instructions (may be None)
            user_prompt: User message
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate

        Returns:
            Response text ("" if the model returned no content)
        """
        messages = self.build_messages(system_prompt, user_prompt)
        try:
            content = await self._acall_api(messages, temperature, max_tokens)
        except Exception as e:
            logger.error(f"Error generating async completion: {e}")
            raise
        logger.debug(f"Async completion: {len(content or '')} chars")
        return content or ""

    async def astream(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a completion as text deltas.

        Not retried; a failure after the first delta propagates to the caller.
        """
        messages = self.build_messages(system_prompt, user_prompt)
        try:
            async for text in self._astream_api(messages, temperature, max_tokens):
                yield text
        except Exception as e:
            logger.error(f"Error streaming completion: {e}")
            raise
