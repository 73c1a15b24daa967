"""Locating a JSON document inside completion text.

Completion answers wrap JSON in markdown fences, surround it with prose, or
both. `extract_json_from_response` only finds *complete* documents; repairing
cut-off ones is the job of services.response_repair.
"""

import json
import re
from typing import Any, Iterator

from utils.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_OPEN_FENCE_RE = re.compile(r"^\s*```(?:json)?", re.IGNORECASE)

_decoder = json.JSONDecoder()


def strip_code_fences(text: str) -> str:
    """Body of the first fenced block; an unclosed opening fence is dropped too."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    opening = _OPEN_FENCE_RE.match(text)
    if opening:
        return text[opening.end():].strip()
    return text


def _embedded_objects(text: str) -> Iterator[Any]:
    """Every JSON object that decodes starting at some '{', outermost first."""
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            yield value
        start = text.find("{", start + 1)


def extract_json_from_response(response: str | None, context: str = "extraction") -> Any | None:
    """First complete JSON document in a completion response.

    Tried in order: the whole text, the fenced block, then objects embedded
    in prose (the earliest one that decodes wins).

    Returns:
        The decoded value, or None when the text holds no complete document
    """
    if not response or not response.strip():
        return None
    text = response.strip()

    for candidate in dict.fromkeys((text, strip_code_fences(text))):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    value = next(_embedded_objects(text), None)
    if value is None:
        logger.debug(
            "No JSON document in completion text",
            extra={"context": context, "response_length": len(text)},
        )
    return value
