"""
Expansion of a short topic into source text for graph extraction.
"""

import logging

from cognify_server.core.config import LLMConfig
from cognify_server.core.errors import InputError

from .triple_extraction.utils import load_prompt, render_template

logger = logging.getLogger(__name__)

TOPIC_PROMPT_FILE = "generate_topic_text.txt"


async def generate_source_text(
    topic: str,
    llm_client,
    config: LLMConfig,
    word_count: int = 800,
) -> str:
    """
    Generate an educational text about a topic.

    Args:
        topic: Topic to write about
        llm_client: LLM client with an acomplete method
        config: LLM settings (topic temperature and max tokens)
        word_count: Approximate length requested from the model

    Returns:
        Generated text

    Raises:
        InputError: If the topic is empty or the model returns no text
    """
    if not topic or not topic.strip():
        raise InputError("Topic must not be empty")

    prompt = render_template(
        load_prompt(TOPIC_PROMPT_FILE),
        word_count=word_count,
        topic=topic.strip(),
    )
    text = await llm_client.acomplete(
        system_prompt=None,
        user_prompt=prompt,
        temperature=config.topic_temperature,
        max_tokens=config.topic_max_tokens,
    )

    if not text or not text.strip():
        raise InputError("Failed to generate text from topic")

    logger.info(f"Generated {len(text.split())} words of source text for topic '{topic}'")
    return text
