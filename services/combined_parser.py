"""Combined (whole-response) extraction mode.

One contextual completion call covers every field. When that call fails
upstream, or its text cannot be repaired, one simpler non-contextual call is
made with the same utterance and form. If that fails too the result is empty;
extraction failure never propagates to the caller.
"""

from dataclasses import dataclass, field as dc_field
from typing import Any, Mapping, Optional, Sequence

from config import get_settings
from models.errors import ListingAssistantError, MalformedResponse
from models.schemas import Category
from services.field_prompts import build_combined_prompt, build_simple_prompt
from services.llm import LLMClient, get_llm_client
from services.response_repair import RepairedPayload, ResponseRepairChain
from utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.7


def coerce_confidence(value: Any) -> float:
    """Clamp a model-reported confidence into [0, 1]; default when missing."""
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


@dataclass
class CombinedParseResult:
    """Unvalidated combined-mode output; the merger validates every value."""
    form_updates: dict[str, Any] = dc_field(default_factory=dict)
    field_updates: list[dict[str, Any]] = dc_field(default_factory=list)
    raw_response: str = ""
    strategy: Optional[str] = None
    used_fallback: bool = False

    @property
    def succeeded(self) -> bool:
        return self.strategy is not None


class CombinedParser:
    """Contextual whole-response extraction with repair and endpoint fallback."""

    def __init__(
        self,
        llm: LLMClient | None = None,
        repair_chain: ResponseRepairChain | None = None,
    ):
        self.llm = llm or get_llm_client()
        self.repair_chain = repair_chain or ResponseRepairChain()
        self.settings = get_settings()

    def _to_result(
        self, payload: RepairedPayload, raw: str, used_fallback: bool
    ) -> CombinedParseResult:
        field_updates = []
        for item in payload.field_updates:
            field_updates.append(
                {
                    "field": str(item.get("field", "")),
                    "value": item.get("value"),
                    "reason": str(item.get("reason") or ""),
                    "confidence": coerce_confidence(item.get("confidence", DEFAULT_CONFIDENCE)),
                }
            )
        return CombinedParseResult(
            form_updates=dict(payload.form_updates),
            field_updates=field_updates,
            raw_response=raw,
            strategy=payload.strategy,
            used_fallback=used_fallback,
        )

    async def _call_and_repair(
        self, prompt: str, max_tokens: int, operation: str
    ) -> tuple[RepairedPayload, str]:
        raw = await self.llm.generate(
            prompt,
            temperature=self.settings.combined_temperature,
            max_tokens=max_tokens,
            operation=operation,
        )
        return self.repair_chain.parse(raw), raw

    async def parse(
        self,
        utterance: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        context_text: str = "",
    ) -> CombinedParseResult:
        """Run the combined extraction for one utterance.

        Returns:
            CombinedParseResult; empty with strategy=None when every path failed
        """
        prompt = build_combined_prompt(utterance, form, categories, context_text)
        primary_raw = ""
        try:
            payload, primary_raw = await self._call_and_repair(
                prompt, self.settings.combined_max_tokens, "combined"
            )
            return self._to_result(payload, primary_raw, used_fallback=False)
        except MalformedResponse as e:
            primary_raw = e.raw_text
            logger.warning("Contextual response unusable, trying simple parse")
        except ListingAssistantError as e:
            logger.warning(f"Contextual parse failed, trying simple parse: {e}")

        simple_prompt = build_simple_prompt(utterance, form, categories)
        try:
            payload, raw = await self._call_and_repair(
                simple_prompt, self.settings.fallback_max_tokens, "combined_fallback"
            )
            return self._to_result(payload, raw, used_fallback=True)
        except MalformedResponse as e:
            logger.warning("Simple parse response unusable, returning no updates")
            return CombinedParseResult(raw_response=e.raw_text or primary_raw)
        except ListingAssistantError as e:
            logger.error(f"Simple parse failed, returning no updates: {e}")
            return CombinedParseResult(raw_response=primary_raw)
