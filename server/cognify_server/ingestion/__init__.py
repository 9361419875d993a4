"""
Text-to-knowledge-graph ingestion.

The pipeline has four parts:
1. Chunking - overlapping word windows (cognify_server.utils.chunking)
2. Triple extraction - one model call per chunk
3. Accumulation - run-scoped merge with node/edge deduplication
4. Connectivity - bridging edges so the graph hangs off one root
"""

from .accumulator import GraphAccumulator, TripleMerge
from .connectivity import enforce_connectivity, select_root
from .pipeline import BuildStats, GraphBuilder
from .topic import generate_source_text

__all__ = [
    "GraphAccumulator",
    "TripleMerge",
    "enforce_connectivity",
    "select_root",
    "BuildStats",
    "GraphBuilder",
    "generate_source_text",
]
