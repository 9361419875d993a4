"""
Server-Sent Events framing for graph build and node-detail events.
"""

import json
from typing import AsyncIterator, Union

from cognify_server.core.models import DetailEvent, StreamEvent, event_payload

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def format_sse(event: Union[StreamEvent, DetailEvent]) -> str:
    """Frame one event as ``event: <type>`` plus a JSON ``data`` line."""
    return f"event: {event.event}\ndata: {json.dumps(event_payload(event))}\n\n"


async def sse_frames(events: AsyncIterator[Union[StreamEvent, DetailEvent]]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)
