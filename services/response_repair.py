"""Repair chain for combined-mode completion responses.

The combined prompt asks for one object:

    {"formUpdates": {field: value}, "fieldUpdates": [{field, value, reason, confidence}]}

What comes back may be wrapped in prose or code fences, cut off at the token
budget, or not JSON at all. Strategies share one contract (raw text in,
normalized payload or None out) and run in order until one succeeds:

1. StrictJsonStrategy - parse the whole or embedded JSON object
2. TruncationRepairStrategy - cut at a closing brace and re-close brackets
3. RegexSalvageStrategy - pull `description` and {field, value} pairs out by pattern

None of them validates field values; that happens for every payload,
whichever strategy produced it, in the update merger.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field as dc_field
from typing import Any, Optional, Sequence

from models.errors import MalformedResponse
from models.schemas import FORM_FIELDS
from utils.json_extraction import extract_json_from_response, strip_code_fences
from utils.logging import get_logger

logger = get_logger(__name__)

# How many closing-brace cut points the truncation repair tries, last first
MAX_TRUNCATION_CUTS = 8

_CLOSERS = {"{": "}", "[": "]"}

_DESCRIPTION_RE = re.compile(r'"description"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)
_FIELD_PAIR_RE = re.compile(
    r'\{\s*"field"\s*:\s*"([^"\\]+)"\s*,\s*"value"\s*:\s*'
    r'("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?)',
    re.DOTALL,
)


@dataclass
class RepairedPayload:
    """Normalized combined-mode payload and the strategy that produced it."""
    strategy: str
    form_updates: dict[str, Any] = dc_field(default_factory=dict)
    field_updates: list[dict[str, Any]] = dc_field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.form_updates and not self.field_updates


def normalize_payload(data: Any) -> Optional[tuple[dict[str, Any], list[dict[str, Any]]]]:
    """Coerce parsed JSON into (formUpdates, fieldUpdates), or None if off-schema.

    A bare object whose keys are all form fields is read as formUpdates.
    """
    if not isinstance(data, dict):
        return None

    if "formUpdates" not in data and "fieldUpdates" not in data:
        if data and all(key in FORM_FIELDS for key in data):
            return dict(data), []
        return None

    form_updates = data.get("formUpdates")
    if not isinstance(form_updates, dict):
        form_updates = {}

    field_updates = []
    raw_items = data.get("fieldUpdates")
    if isinstance(raw_items, list):
        for item in raw_items:
            if isinstance(item, dict) and "field" in item and "value" in item:
                field_updates.append(item)

    return form_updates, field_updates


class RepairStrategy(ABC):
    """One way of turning raw completion text into a payload."""

    name: str = "base"

    @abstractmethod
    def attempt(self, raw: str) -> Optional[RepairedPayload]:
        """Return a payload, or None if this strategy cannot handle the text."""
        ...

    def _payload(self, data: Any) -> Optional[RepairedPayload]:
        normalized = normalize_payload(data)
        if normalized is None:
            return None
        form_updates, field_updates = normalized
        return RepairedPayload(self.name, form_updates, field_updates)


def _json_region(raw: str) -> str:
    """Fence-stripped text from the first opening brace, or "" if there is none."""
    text = strip_code_fences(raw.strip()).strip()
    start = text.find("{")
    return text[start:] if start != -1 else ""


class StrictJsonStrategy(RepairStrategy):
    name = "strict_json"

    def attempt(self, raw: str) -> Optional[RepairedPayload]:
        # A cut-off object would only yield one of its inner objects here
        region = _json_region(raw)
        if region and closing_sequence(region) != "":
            return None
        data = extract_json_from_response(raw, context="combined_parse")
        return self._payload(data)


def closing_sequence(text: str) -> Optional[str]:
    """Characters that close every bracket left open in a JSON prefix.

    Returns None if the prefix ends inside a string or has unbalanced closers.
    """
    stack: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None

    if in_string:
        return None
    return "".join(reversed(stack))


class TruncationRepairStrategy(RepairStrategy):
    """Recover a response that was cut off before its final closing brace."""

    name = "truncation_repair"

    def attempt(self, raw: str) -> Optional[RepairedPayload]:
        text = _json_region(raw)
        # Balanced text is complete; a cut can still land right after a brace
        if not text or closing_sequence(text) == "":
            return None

        end = len(text)
        for _ in range(MAX_TRUNCATION_CUTS):
            cut = text.rfind("}", 0, end)
            if cut == -1:
                break
            end = cut
            prefix = text[: cut + 1].rstrip().rstrip(",")
            closers = closing_sequence(prefix)
            if closers is None:
                continue
            try:
                data = json.loads(prefix + closers)
            except (json.JSONDecodeError, ValueError):
                continue
            payload = self._payload(data)
            if payload is not None:
                logger.info(
                    "Repaired truncated completion response",
                    extra={"kept_chars": len(prefix), "dropped_chars": len(text) - len(prefix)},
                )
                return payload

        return None


def _decode_json_string(literal: str) -> str:
    try:
        return json.loads(f'"{literal}"')
    except (json.JSONDecodeError, ValueError):
        return literal


class RegexSalvageStrategy(RepairStrategy):
    """Last resort: pattern-match values out of unparsable text."""

    name = "regex_salvage"

    def attempt(self, raw: str) -> Optional[RepairedPayload]:
        form_updates: dict[str, Any] = {}
        match = _DESCRIPTION_RE.search(raw)
        if match:
            form_updates["description"] = _decode_json_string(match.group(1))

        field_updates = []
        for field_match in _FIELD_PAIR_RE.finditer(raw):
            value = field_match.group(2)
            if value.startswith('"'):
                value = _decode_json_string(value[1:-1])
            field_updates.append({"field": field_match.group(1), "value": value})

        if not form_updates and not field_updates:
            return None
        return RepairedPayload(self.name, form_updates, field_updates)


DEFAULT_STRATEGIES: tuple[RepairStrategy, ...] = (
    StrictJsonStrategy(),
    TruncationRepairStrategy(),
    RegexSalvageStrategy(),
)


class ResponseRepairChain:
    """Runs repair strategies in order until one yields a payload."""

    def __init__(self, strategies: Sequence[RepairStrategy] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def parse(self, raw: str) -> RepairedPayload:
        """Parse a combined-mode response.

        Raises:
            MalformedResponse: If no strategy produced a payload
        """
        if raw and raw.strip():
            for strategy in self.strategies:
                payload = strategy.attempt(raw)
                if payload is not None:
                    logger.debug(
                        f"Combined response parsed by {strategy.name}",
                        extra={
                            "strategy": strategy.name,
                            "form_updates": len(payload.form_updates),
                            "field_updates": len(payload.field_updates),
                        },
                    )
                    return payload

        logger.warning(
            "No repair strategy could parse the completion response",
            extra={"response_length": len(raw or ""), "preview": (raw or "")[:200]},
        )
        raise MalformedResponse(raw or "")
