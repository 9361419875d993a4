from .node_details import NodeDetailStreamer, find_relationships, replay_node_detail
from .orchestrator import GraphRun, GraphStreamOrchestrator, replay_snapshot
from .sse import SSE_HEADERS, format_sse, sse_frames

__all__ = [
    "GraphRun",
    "GraphStreamOrchestrator",
    "replay_snapshot",
    "NodeDetailStreamer",
    "find_relationships",
    "replay_node_detail",
    "SSE_HEADERS",
    "format_sse",
    "sse_frames",
]
