"""
Exception types raised by the graph pipeline.

Per-chunk failures (ChunkExtractionError) are recovered inside the pipeline;
everything else aborts the run and is reported to the client as an error event.
"""

from typing import List, Optional, Tuple


class CognifyError(Exception):
    """Base class for graph pipeline errors."""


class InputError(CognifyError):
    """No usable source text for a run."""


class MalformedModelOutput(CognifyError):
    """Every JSON repair stage failed on a model response."""

    def __init__(self, message: str, attempts: Optional[List[Tuple[str, str]]] = None):
        super().__init__(message)
        self.attempts = attempts or []


class ChunkExtractionError(CognifyError):
    """A single chunk's model call failed or returned nothing salvageable."""

    def __init__(self, message: str, chunk_index: Optional[int] = None):
        super().__init__(message)
        self.chunk_index = chunk_index


class PersistenceError(CognifyError):
    """Writing run state or the final snapshot to the store failed."""


class GraphNotFoundError(CognifyError):
    """No graph record with the requested ID."""


class BuildInProgressError(CognifyError):
    """Another build is already running for the same graph."""


class NodeNotFoundError(CognifyError):
    """The graph's snapshot has no node with the requested ID."""


class GraphNotReadyError(CognifyError):
    """The graph has no finished snapshot yet."""


class LLMUnavailableError(CognifyError):
    """No LLM client is configured."""
