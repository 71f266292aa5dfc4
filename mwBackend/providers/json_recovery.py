"""
Staged recovery of JSON from free-form LLM output.

Each stage is a fallback for the previous one's failure:

1. ``clean_json_response``: strip a markdown fence and keep the span from
   the first ``{``/``[`` to the last ``}``/``]``.
2. ``aggressive_json_cleaning``: cut everything before the first opening
   and after the last closing bracket, then drop known preambles.
3. ``recover_truncated_json``: close an object/array that was cut off by an
   output-token ceiling at its last complete top-level member.

Stage 3 is a best-effort depth-tracking heuristic, not a JSON tokenizer; it
is not guaranteed to recover deeply nested structures.
"""

import json
import logging
import re
from typing import Any

from providers.errors import StructuredOutputError

logger = logging.getLogger(__name__)

STAGE_CLEAN = "clean"
STAGE_AGGRESSIVE = "aggressive"
STAGE_TRUNCATED = "truncated"
# Stage 3 found no complete member and substituted a placeholder.
STAGE_SENTINEL = "truncated-sentinel"

TRUNCATED_OBJECT_SENTINEL = '{"error":"Truncated response"}'
TRUNCATED_ARRAY_SENTINEL = "[]"
_SENTINELS = (TRUNCATED_OBJECT_SENTINEL, TRUNCATED_ARRAY_SENTINEL)

KNOWN_PREAMBLES = (
    "Here is the JSON:",
    "The JSON response is:",
    "Response:",
    "Here's the analysis:",
    "Analysis:",
)

_JSON_FENCE_OPEN = re.compile(r"^```json\s*")
_FENCE_OPEN = re.compile(r"^```\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_JSON_SPAN = re.compile(r"([\[{][\s\S]*[\]}])")
_FIRST_OPENING = re.compile(r"[\[{]")


def _strip_fences(text: str) -> str:
    text = _FENCE_CLOSE.sub("", _JSON_FENCE_OPEN.sub("", text))
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text))


def _strip_preambles(text: str) -> str:
    for prefix in KNOWN_PREAMBLES:
        if text.lower().startswith(prefix.lower()):
            text = text[len(prefix):].strip()
    return text


def clean_json_response(content: str) -> str:
    """Stage 1. Idempotent on text that is already clean JSON."""
    cleaned = _strip_fences(content.strip())
    match = _JSON_SPAN.search(cleaned)
    if match:
        cleaned = match.group(1)
    return cleaned.strip()


def aggressive_json_cleaning(content: str) -> str:
    """Stage 2."""
    cleaned = content.strip()

    start = _FIRST_OPENING.search(cleaned)
    if start:
        cleaned = cleaned[start.start():]

    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if end != -1:
        cleaned = cleaned[:end + 1]

    return _strip_preambles(cleaned)


def _last_object_boundary(text: str) -> int:
    """Index to cut a truncated object at, or -1.

    A boundary is a ``,`` between top-level properties, or the position just
    after a nested value closes back to depth 1.
    """
    depth = 0
    in_string = False
    escaped = False
    boundary = -1

    for i, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 1:
                boundary = i + 1
        elif char == "," and depth == 1:
            boundary = i

    return boundary


def _last_array_boundary(text: str) -> int:
    """Index to cut a truncated array at, or -1."""
    braces = 0
    brackets = 0
    in_string = False
    escaped = False
    boundary = -1

    for i, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            braces += 1
        elif char == "}":
            braces -= 1
            if braces == 0 and brackets == 1:
                boundary = i + 1
        elif char == "[":
            brackets += 1
        elif char == "]":
            brackets -= 1
            if braces == 0 and brackets == 1:
                boundary = i + 1
        elif char == "," and braces == 0 and brackets == 1:
            boundary = i

    return boundary


def recover_truncated_json(content: str) -> str:
    """Stage 3. Close a cut-off object or array at its last complete member.

    Falls back to a sentinel (``{"error":"Truncated response"}`` or ``[]``)
    when no complete member exists.
    """
    cleaned = _strip_preambles(_strip_fences(content.strip()))

    start = _FIRST_OPENING.search(cleaned)
    if start:
        cleaned = cleaned[start.start():]
    cleaned = cleaned.rstrip()

    if cleaned.startswith("{") and not cleaned.endswith("}"):
        boundary = _last_object_boundary(cleaned)
        if boundary != -1:
            return cleaned[:boundary].rstrip() + "}"
        return TRUNCATED_OBJECT_SENTINEL

    if cleaned.startswith("[") and not cleaned.endswith("]"):
        boundary = _last_array_boundary(cleaned)
        if boundary != -1:
            return cleaned[:boundary].rstrip() + "]"
        return TRUNCATED_ARRAY_SENTINEL

    return cleaned


def _loads_structure(text: str) -> Any:
    value = json.loads(text)
    if not isinstance(value, (dict, list)):
        raise ValueError(f"expected a JSON object or array, got {type(value).__name__}")
    return value


def parse_json_response(content: str) -> tuple[Any, str]:
    """Run the recovery stages in order.

    Returns the parsed object/array and the name of the stage that produced
    it. Raises StructuredOutputError when every stage fails.
    """
    try:
        return _loads_structure(clean_json_response(content)), STAGE_CLEAN
    except ValueError as e:
        logger.warning(f"JSON parsing failed, attempting aggressive cleaning: {e}")

    try:
        return _loads_structure(aggressive_json_cleaning(content)), STAGE_AGGRESSIVE
    except ValueError as e:
        logger.warning(f"Aggressive cleaning failed, attempting truncation recovery: {e}")

    recovered = recover_truncated_json(content)
    stage = STAGE_SENTINEL if recovered in _SENTINELS else STAGE_TRUNCATED
    try:
        return _loads_structure(recovered), stage
    except ValueError as e:
        logger.error(f"All JSON parsing attempts failed: {e}")
        raise StructuredOutputError(f"Failed to parse JSON response: {e}") from e
