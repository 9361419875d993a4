"""
Triple Extraction Module

Turns a chunk of text into subject-predicate-object triples with a single
model call. Prompts are text templates under ``prompts/``; model output is
recovered through the JSON repair cascade in ``cognify_server.utils.json_repair``.
"""

from .models import TripleList
from .extract_triples import (
    build_triple_prompts,
    extract_triples,
    extract_triples_sync,
    parse_triples_response,
)

__all__ = [
    "TripleList",
    "build_triple_prompts",
    "extract_triples",
    "extract_triples_sync",
    "parse_triples_response",
]
