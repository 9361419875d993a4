"""
FastAPI Server for Cognify - streaming text-to-knowledge-graph extraction

This server provides RESTful API endpoints for:
- Creating graphs from uploaded text or a topic
- Streaming a graph build as Server-Sent Events
- Streaming generated explanations of single nodes
- Listing, fetching and deleting a user's graphs

Run with: uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from cognify_server.core.config import CognifyConfig
from cognify_server.core.errors import (
    BuildInProgressError,
    GraphNotFoundError,
    GraphNotReadyError,
    InputError,
    LLMUnavailableError,
    NodeNotFoundError,
)
from cognify_server.core.models import GraphRecord, GraphSnapshot, GraphStatus, SourceType
from cognify_server.ingestion import generate_source_text
from cognify_server.storage import GraphStore, create_graph_store
from cognify_server.streaming import (
    SSE_HEADERS,
    GraphStreamOrchestrator,
    NodeDetailStreamer,
    sse_frames,
)
from cognify_server.utils import create_llm_client

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"

_config: Optional[CognifyConfig] = None
_store: Optional[GraphStore] = None
_llm_client = None
_orchestrator: Optional[GraphStreamOrchestrator] = None
_detail_streamer: Optional[NodeDetailStreamer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI app.
    Handles startup and shutdown events.
    """
    global _config, _store, _llm_client, _orchestrator, _detail_streamer

    _config = CognifyConfig()
    logging.getLogger().setLevel(_config.system.log_level.upper())
    logger.info(f"Loaded configuration: {_config!r}")

    _store = create_graph_store(_config.storage)
    try:
        _llm_client = create_llm_client(_config.llm)
    except ValueError as e:
        logger.error(f"LLM client not configured: {e}")
        _llm_client = None

    _orchestrator = GraphStreamOrchestrator(_store, _llm_client, _config)
    _detail_streamer = NodeDetailStreamer(_store, _llm_client, _config.llm)
    logger.info(f"Cognify Server initialized (storage={_config.storage.backend}, llm={_config.llm.provider})")

    yield

    logger.info("Shutting down Cognify Server...")
    await _orchestrator.aclose()
    await _store.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Cognify API",
    description="Streaming construction of knowledge graphs from text",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CognifyConfig().system.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===== Dependencies =====

def get_config() -> CognifyConfig:
    return _config or CognifyConfig()


def get_store() -> GraphStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Graph store not initialized")
    return _store


def get_llm_client():
    return _llm_client


def get_orchestrator() -> GraphStreamOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return _orchestrator


def get_detail_streamer() -> NodeDetailStreamer:
    if _detail_streamer is None:
        raise HTTPException(status_code=503, detail="Node detail service not initialized")
    return _detail_streamer


async def get_current_user(
    x_user_id: Optional[str] = Header(None, description="ID of the calling user")
) -> str:
    """Identity of the caller. Authentication happens upstream of this service."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return x_user_id


async def get_owned_graph(
    graph_id: str,
    user_id: str = Depends(get_current_user),
    store: GraphStore = Depends(get_store),
) -> GraphRecord:
    record = await store.get(graph_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Graph not found")
    if record.user_id != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return record


# ===== Request/Response Models =====

class CreateGraphRequest(BaseModel):
    """Request model for creating a graph"""
    topic: Optional[str] = Field(None, description="Topic to generate source text about")
    input_text: Optional[str] = Field(None, alias="inputText", description="Source text to extract from")
    name: Optional[str] = Field(None, description="Display name (defaults to topic or date)")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "inputText": "Photosynthesis converts light energy into chemical energy.",
                "name": "Photosynthesis notes",
            }
        },
    )


class CreateGraphResponse(BaseModel):
    graph_id: str = Field(..., alias="graphId")

    model_config = ConfigDict(populate_by_name=True)


class GraphDetailResponse(BaseModel):
    """Full graph record as returned to its owner"""
    id: str
    name: str
    source_type: SourceType = Field(..., alias="sourceType")
    status: str
    input_meta: Dict[str, Any] = Field(default_factory=dict, alias="inputMeta")
    graph_json: Optional[GraphSnapshot] = Field(None, alias="graphJson")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: GraphRecord) -> "GraphDetailResponse":
        return cls(
            id=record.id,
            name=record.name,
            source_type=record.source_type,
            status=record.status.value,
            input_meta=record.input_meta,
            graph_json=record.graph_json,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class HealthResponse(BaseModel):
    status: str
    version: str
    active_builds: int
    timestamp: str


# ===== Endpoints =====

@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        active_builds=len(_orchestrator.active_runs()) if _orchestrator else 0,
        timestamp=datetime.now().isoformat(),
    )


@app.post("/graphs", response_model=CreateGraphResponse, response_model_by_alias=True)
async def create_graph(
    request: CreateGraphRequest,
    user_id: str = Depends(get_current_user),
    store: GraphStore = Depends(get_store),
    config: CognifyConfig = Depends(get_config),
    llm_client=Depends(get_llm_client),
):
    """
    Create a pending graph from uploaded text or a topic.

    The build itself starts when the graph's stream is opened.
    """
    if await store.has_building_graph(user_id, config.graph.stale_build_seconds):
        raise HTTPException(status_code=429, detail="Please wait for current graph to complete")

    if bool(request.topic) == bool(request.input_text):
        raise HTTPException(
            status_code=400,
            detail="Must provide either 'topic' or 'inputText', but not both",
        )

    if request.topic:
        if llm_client is None:
            raise HTTPException(status_code=503, detail="LLM client not configured")
        try:
            source_text = await generate_source_text(request.topic, llm_client, config.llm)
        except InputError as e:
            logger.error(f"Topic generation returned no text for '{request.topic}': {e}")
            raise HTTPException(status_code=500, detail="Failed to generate text from topic")
        except Exception as e:
            logger.error(f"Topic generation failed for '{request.topic}': {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to generate text from topic. Please try again.")

        record = GraphRecord(
            user_id=user_id,
            name=request.name or request.topic,
            source_type=SourceType.TOPIC,
            input_meta={"topic": request.topic},
            input_text=source_text,
        )
    else:
        if len(request.input_text) > config.graph.max_input_chars:
            raise HTTPException(
                status_code=400,
                detail=f"Input text too large (max {config.graph.max_input_chars:,} characters)",
            )
        record = GraphRecord(
            user_id=user_id,
            name=request.name or f"Graph {datetime.now(timezone.utc).date().isoformat()}",
            source_type=SourceType.UPLOAD,
            input_meta={"length": len(request.input_text)},
            input_text=request.input_text,
        )

    await store.create(record)
    return CreateGraphResponse(graph_id=record.id)


@app.get("/graphs/{graph_id}/stream")
async def stream_graph(
    record: GraphRecord = Depends(get_owned_graph),
    orchestrator: GraphStreamOrchestrator = Depends(get_orchestrator),
):
    """
    Stream a graph build as Server-Sent Events.

    Finished graphs are replayed from storage; otherwise a build starts.
    """
    if orchestrator.llm_client is None and record.status != GraphStatus.COMPLETE:
        raise HTTPException(status_code=503, detail="LLM client not configured")

    try:
        events = await orchestrator.stream(record.id)
    except GraphNotFoundError:
        raise HTTPException(status_code=404, detail="Graph not found")
    except BuildInProgressError:
        raise HTTPException(status_code=409, detail="Graph is already being built")

    return StreamingResponse(
        sse_frames(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/graphs/{graph_id}/nodes/{node_id}/details")
async def stream_node_details(
    node_id: str,
    record: GraphRecord = Depends(get_owned_graph),
    details: NodeDetailStreamer = Depends(get_detail_streamer),
):
    """
    Stream an explanation of one node as Server-Sent Events.

    The first request generates and caches the explanation; later requests
    replay it.
    """
    try:
        events = await details.stream(record, node_id)
    except GraphNotReadyError:
        raise HTTPException(status_code=409, detail="Graph has not finished building")
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail="Node not found")
    except LLMUnavailableError:
        raise HTTPException(status_code=503, detail="LLM client not configured")

    return StreamingResponse(
        sse_frames(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/graphs")
async def list_graphs(
    user_id: str = Depends(get_current_user),
    store: GraphStore = Depends(get_store),
) -> Dict[str, List[Dict[str, Any]]]:
    """List the caller's graphs, newest first"""
    records = await store.list_for_user(user_id)
    return {"graphs": [r.to_listing() for r in records]}


@app.get("/graphs/{graph_id}", response_model=GraphDetailResponse, response_model_by_alias=True)
async def get_graph(record: GraphRecord = Depends(get_owned_graph)):
    """Get one graph including its persisted snapshot"""
    return GraphDetailResponse.from_record(record)


@app.delete("/graphs/{graph_id}")
async def delete_graph(
    record: GraphRecord = Depends(get_owned_graph),
    store: GraphStore = Depends(get_store),
):
    """Delete a graph"""
    await store.delete(record.id)
    logger.info(f"Deleted graph {record.id}")
    return {"deleted": True, "graphId": record.id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
