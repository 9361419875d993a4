"""
Triple extraction from a single chunk of text.

One model call per chunk; the response is parsed through the JSON repair
cascade and validated into Triple objects.
"""

import logging
from typing import List, Optional, Tuple

from cognify_server.core.errors import ChunkExtractionError, MalformedModelOutput
from cognify_server.core.models import Triple
from cognify_server.utils.json_repair import parse_model_json

from .models import TripleList
from .utils import load_prompt, render_template

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_FILE = "extract_triples_system.txt"
INPUT_PROMPT_FILE = "extract_triples_input.txt"


def build_triple_prompts(
    chunk: str,
    max_predicate_words: int = 3,
    root_concept: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Build system and user prompts for one extraction call.

    Args:
        chunk: Text chunk to analyze
        max_predicate_words: Hard cap on predicate length stated to the model
        root_concept: Optional name the model must use for the root concept

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    system_prompt = render_template(
        load_prompt(SYSTEM_PROMPT_FILE),
        max_predicate_words=max_predicate_words,
    )
    user_prompt = render_template(
        load_prompt(INPUT_PROMPT_FILE),
        max_predicate_words=max_predicate_words,
        root_concept=root_concept,
        text=chunk,
    )
    return system_prompt, user_prompt


def parse_triples_response(response_text: str) -> TripleList:
    """
    Parse a model response into triples.

    Raises:
        MalformedModelOutput: If no repair stage could recover any JSON
    """
    extraction = parse_model_json(response_text)
    if not extraction.ok:
        raise MalformedModelOutput(
            f"Unsalvageable model output: {extraction.describe_failures()}",
            attempts=extraction.attempts,
        )

    result = TripleList.from_payload(extraction.value, parse_stage=extraction.stage)
    if extraction.status == "partial":
        logger.warning(f"Salvaged {len(result.triples)} triples from truncated model output")
    if result.discarded:
        logger.warning(f"Discarded {result.discarded} incomplete triples")
    return result


async def extract_triples(
    chunk: str,
    llm_client,
    max_predicate_words: int = 3,
    root_concept: Optional[str] = None,
    temperature: float = 0.0,
    max_tokens: Optional[int] = None,
    chunk_index: Optional[int] = None,
) -> List[Triple]:
    """
    Extract subject-predicate-object triples from a chunk.

    Args:
        chunk: Text chunk to analyze
        llm_client: LLM client with an acomplete method
        max_predicate_words: Predicate word limit stated in the prompt
        root_concept: Optional root concept name to anchor the graph
        temperature: Sampling temperature
        max_tokens: Maximum tokens for the response
        chunk_index: Position of the chunk, for error reporting

    Returns:
        Triples with non-empty subject, predicate and object

    Raises:
        ChunkExtractionError: If the model call fails or its output is unsalvageable
    """
    system_prompt, user_prompt = build_triple_prompts(chunk, max_predicate_words, root_concept)

    try:
        response_text = await llm_client.acomplete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        raise ChunkExtractionError(f"Model call failed: {e}", chunk_index=chunk_index) from e

    try:
        result = parse_triples_response(response_text)
    except MalformedModelOutput as e:
        raise ChunkExtractionError(str(e), chunk_index=chunk_index) from e

    logger.debug(f"Extracted {len(result.triples)} triples (stage: {result.parse_stage})")
    return result.triples


def extract_triples_sync(
    chunk: str,
    llm_client,
    max_predicate_words: int = 3,
    root_concept: Optional[str] = None,
    temperature: float = 0.0,
    max_tokens: Optional[int] = None,
    chunk_index: Optional[int] = None,
) -> List[Triple]:
    """
    Synchronous version of extract_triples.

    Args:
        chunk: Text chunk to analyze
        llm_client: LLM client with a complete method
        max_predicate_words: Predicate word limit stated in the prompt
        root_concept: Optional root concept name to anchor the graph
        temperature: Sampling temperature
        max_tokens: Maximum tokens for the response
        chunk_index: Position of the chunk, for error reporting

    Returns:
        Triples with non-empty subject, predicate and object
    """
    system_prompt, user_prompt = build_triple_prompts(chunk, max_predicate_words, root_concept)

    try:
        response_text = llm_client.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        raise ChunkExtractionError(f"Model call failed: {e}", chunk_index=chunk_index) from e

    try:
        result = parse_triples_response(response_text)
    except MalformedModelOutput as e:
        raise ChunkExtractionError(str(e), chunk_index=chunk_index) from e

    logger.debug(f"Extracted {len(result.triples)} triples (stage: {result.parse_stage})")
    return result.triples
