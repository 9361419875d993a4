"""
Data models for knowledge graph construction.

Covers the graph itself (nodes, edges, snapshots), the transient triples
returned by the extractor, the persisted graph record, and the typed events
streamed to clients while a graph is being built.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GraphStatus(str, Enum):
    """Lifecycle status of a graph build."""
    PENDING = "pending"
    BUILDING = "building"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (GraphStatus.COMPLETE, GraphStatus.ERROR)


class SourceType(str, Enum):
    """Where the graph's source text came from."""
    TOPIC = "topic"
    UPLOAD = "upload"


# Graph structure

class GraphNode(BaseModel):
    """A concept in the knowledge graph."""

    id: str = Field(description="Content-derived identifier of the normalized label")
    label: str = Field(description="Display label")
    group: str = Field(
        default="extracted",
        description="Provenance tag: 'extracted' or 'root'"
    )
    weight: float = Field(default=1, description="Relative importance of the node")


class GraphEdge(BaseModel):
    """A directed, labelled relation between two nodes."""

    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    relation: str = Field(description="Predicate, at most three words")
    type: str = Field(
        default="extracted",
        description="Provenance tag: 'extracted' or 'root' for bridging edges"
    )
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Edge identity: (source, relation, target)."""
        return (self.source, self.relation, self.target)


class GraphSnapshot(BaseModel):
    """Complete node/edge set persisted when a build finishes."""

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)

    def summary(self) -> "GraphSummary":
        return GraphSummary(nodes=len(self.nodes), edges=len(self.edges))


class GraphSummary(BaseModel):
    nodes: int
    edges: int


class Triple(BaseModel):
    """Raw subject-predicate-object statement returned by one extraction call."""

    subject: str
    predicate: str
    object: str


# Persisted record

class GraphRecord(BaseModel):
    """
    A graph-build request and its outcome.

    The pipeline reads ``input_text`` and writes ``status`` and, once complete,
    ``graph_json``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    name: str
    source_type: SourceType = SourceType.UPLOAD
    input_meta: Dict[str, Any] = Field(default_factory=dict)
    input_text: Optional[str] = None
    status: GraphStatus = GraphStatus.PENDING
    graph_json: Optional[GraphSnapshot] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_listing(self) -> Dict[str, Any]:
        """Lightweight view used when listing a user's graphs."""
        return {
            "id": self.id,
            "name": self.name,
            "sourceType": self.source_type.value,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# Node details

class IncomingRelation(BaseModel):
    source: str = Field(description="Label of the node the edge comes from")
    relation: str


class OutgoingRelation(BaseModel):
    relation: str
    target: str = Field(description="Label of the node the edge points to")


class NodeRelationships(BaseModel):
    """A node's edges in a finished graph, resolved to labels."""

    incoming: List[IncomingRelation] = Field(default_factory=list)
    outgoing: List[OutgoingRelation] = Field(default_factory=list)


class NodeDetail(BaseModel):
    """
    Generated explanation of one node of a finished graph.

    Cached per (graph_id, node_id) so that later requests replay it.
    """

    graph_id: str
    node_id: str
    node_label: str
    content: str
    relationships: NodeRelationships = Field(default_factory=NodeRelationships)
    created_at: datetime = Field(default_factory=utc_now)


# Stream events

class StatusEvent(BaseModel):
    event: Literal["status"] = "status"
    message: str


class NodeEvent(BaseModel):
    event: Literal["node"] = "node"
    node: GraphNode


class EdgeEvent(BaseModel):
    event: Literal["edge"] = "edge"
    edge: GraphEdge


class CompleteEvent(BaseModel):
    event: Literal["complete"] = "complete"
    summary: GraphSummary


class ErrorEvent(BaseModel):
    event: Literal["error"] = "error"
    message: str


class ContentEvent(BaseModel):
    event: Literal["content"] = "content"
    text: str


class DetailCompleteEvent(BaseModel):
    event: Literal["complete"] = "complete"
    relationships: NodeRelationships


StreamEvent = Union[StatusEvent, NodeEvent, EdgeEvent, CompleteEvent, ErrorEvent]

# Events of a node-detail stream
DetailEvent = Union[StatusEvent, ContentEvent, DetailCompleteEvent, ErrorEvent]

TERMINAL_EVENTS = ("complete", "error")


def event_payload(event: Union[StreamEvent, DetailEvent]) -> Dict[str, Any]:
    """Wire body of an event, without the ``event`` tag."""
    return event.model_dump(mode="json", exclude={"event"})
