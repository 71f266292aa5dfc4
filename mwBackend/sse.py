import json

from starlette.responses import StreamingResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse(event: str, data: dict) -> str:
    """Format a single SSE frame."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def sse_response(frames) -> StreamingResponse:
    """Wrap an async iterator of SSE frames in a StreamingResponse."""
    return StreamingResponse(frames, media_type="text/event-stream", headers=SSE_HEADERS)
