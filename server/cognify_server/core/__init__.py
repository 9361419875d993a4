from .config import CognifyConfig
from .errors import (
    BuildInProgressError,
    ChunkExtractionError,
    CognifyError,
    GraphNotFoundError,
    GraphNotReadyError,
    InputError,
    LLMUnavailableError,
    MalformedModelOutput,
    NodeNotFoundError,
    PersistenceError,
)

__all__ = [
    "CognifyConfig",
    "CognifyError",
    "InputError",
    "MalformedModelOutput",
    "ChunkExtractionError",
    "PersistenceError",
    "GraphNotFoundError",
    "BuildInProgressError",
    "NodeNotFoundError",
    "GraphNotReadyError",
    "LLMUnavailableError",
]
