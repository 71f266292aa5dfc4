import json
import logging
from typing import Any, AsyncIterator

import httpx

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the payload of every ``data:`` line of an SSE response.

    httpx decodes the chunked body incrementally and splits it on line
    boundaries; blank lines, ``event:`` lines and ``:`` keep-alive comments
    are skipped.
    """
    async for line in response.aiter_lines():
        if not line.strip() or not line.startswith(DATA_PREFIX):
            continue
        yield line[len(DATA_PREFIX):].strip()


def parse_event(data: str) -> Any:
    """Decode one SSE payload, returning None for a malformed line."""
    try:
        return json.loads(data)
    except ValueError:
        logger.debug(f"Skipping unparseable stream line: {data[:80]}")
        return None


async def read_error_body(response: httpx.Response) -> Any:
    """Read and decode the body of a failed (possibly streamed) response."""
    await response.aread()
    try:
        return response.json()
    except ValueError:
        return response.text
