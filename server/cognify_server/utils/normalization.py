"""
Entity and predicate normalization.

Canonical forms raise the chance that the same concept extracted from
different chunks resolves to the same node.
"""

import hashlib

NODE_ID_LENGTH = 16

ENTITY_STOPWORDS = frozenset({
    "the", "a", "an",
    "of", "in", "on", "at", "to", "for", "with", "by", "as",
    "and", "or",
    "is", "was", "are", "were",
})

# Words a truncated predicate should not end on
TRAILING_STOPWORDS = frozenset({
    "a", "an", "the",
    "of", "with", "by", "to", "from", "in", "on", "for",
})


def normalize_entity(entity: str) -> str:
    """
    Lowercase, trim and drop stopwords from an entity string.

    >>> normalize_entity("  The Cell  Membrane ")
    'cell membrane'
    """
    words = entity.lower().strip().split()
    return " ".join(word for word in words if word not in ENTITY_STOPWORDS)


def limit_predicate_length(predicate: str, max_words: int = 3) -> str:
    """
    Cap a predicate at ``max_words`` words.

    Predicates already within the limit are returned trimmed. Longer ones are
    cut to the first ``max_words`` words and lose any trailing stopwords, but
    always keep at least one word.
    """
    words = predicate.strip().split()

    if len(words) <= max_words:
        return predicate.strip()

    shortened = words[:max_words]
    while len(shortened) > 1 and shortened[-1].lower() in TRAILING_STOPWORDS:
        shortened.pop()

    return " ".join(shortened)


def generate_node_id(label: str) -> str:
    """Deterministic node ID: truncated SHA-256 of the lowercased, trimmed label."""
    normalized = label.lower().strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:NODE_ID_LENGTH]


def node_id_for(entity: str) -> str:
    """Node ID of a raw entity string, after normalization."""
    return generate_node_id(normalize_entity(entity))
