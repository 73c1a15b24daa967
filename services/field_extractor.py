"""Per-field extraction pipeline.

For each candidate field: apply the field guard, ask the completion service
for that one value, and run the answer through the field's validator.
A failed call or a rejected value means "no update for this field"; it is
never an error for the caller.
"""

import asyncio
from dataclasses import dataclass, field as dc_field
from typing import Mapping, Optional, Sequence

from config import get_settings
from models.errors import ListingAssistantError
from models.schemas import Category, FieldUpdate
from services.field_detector import fields_for_utterance, is_explicit_mention
from services.field_prompts import FIELD_INSTRUCTIONS, FIELD_REASONS, build_field_prompt
from services.field_validators import validate_field_value
from services.llm import LLMClient, get_llm_client
from utils.logging import get_logger

logger = get_logger(__name__)


def should_skip_field(
    field: str,
    utterance: str,
    form: Mapping[str, str],
    target_field: Optional[str] = None,
) -> bool:
    """Field guard: keep an already-filled field unless the utterance names it.

    The explicit target field is never skipped.
    """
    if field == target_field:
        return False
    has_value = bool((form.get(field) or "").strip())
    return has_value and not is_explicit_mention(field, utterance)


@dataclass
class FieldExtractionResult:
    """Outcome of one per-field pipeline run."""
    candidates: list[str]
    form_updates: dict[str, str] = dc_field(default_factory=dict)
    field_updates: list[FieldUpdate] = dc_field(default_factory=list)
    skipped: list[str] = dc_field(default_factory=list)
    rejected: list[str] = dc_field(default_factory=list)
    failed: list[str] = dc_field(default_factory=list)
    raw_responses: dict[str, str] = dc_field(default_factory=dict)

    @property
    def upstream_ok(self) -> bool:
        """False only when every attempted call failed upstream."""
        attempted = len(self.candidates) - len(self.skipped)
        return attempted == 0 or len(self.failed) < attempted


class FieldExtractor:
    """Runs the per-field extraction pipeline against the completion service."""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or get_llm_client()
        self.settings = get_settings()

    async def extract_field(
        self,
        field: str,
        utterance: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        field_context: str = "",
    ) -> tuple[Optional[str], str]:
        """Extract and validate one field.

        Returns:
            (validated value or None, raw completion text)

        Raises:
            ListingAssistantError: If the completion call failed
        """
        prompt = build_field_prompt(field, utterance, form, categories, field_context)
        raw = await self.llm.generate(
            prompt,
            temperature=self.settings.field_temperature,
            max_tokens=self.settings.field_max_tokens,
            operation=f"field:{field}",
        )
        value = validate_field_value(
            field,
            raw.strip(),
            categories,
            self.settings.category_match_threshold,
        )
        return value, raw

    async def extract(
        self,
        utterance: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        target_field: Optional[str] = None,
        field_context: str = "",
    ) -> FieldExtractionResult:
        """Run detection, guard, extraction and validation for one utterance.

        Args:
            utterance: The user's free-form input
            form: Current form snapshot (never mutated)
            categories: Category allow-list for this call
            target_field: When given, the only candidate; bypasses the guard
            field_context: Field-specific grounding, used with target_field

        Returns:
            FieldExtractionResult with updates in detection order
        """
        if target_field:
            candidates = [target_field]
        else:
            candidates = fields_for_utterance(utterance)
        result = FieldExtractionResult(candidates=candidates)

        to_process = []
        for name in candidates:
            if name not in FIELD_INSTRUCTIONS:
                result.rejected.append(name)
            elif should_skip_field(name, utterance, form, target_field):
                logger.debug(f"Skipping {name} - already has value and not specifically mentioned")
                result.skipped.append(name)
            else:
                to_process.append(name)

        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_field_calls))

        async def run(name: str) -> tuple[Optional[str], str]:
            async with semaphore:
                return await self.extract_field(
                    name,
                    utterance,
                    form,
                    categories,
                    field_context if name == target_field else "",
                )

        outcomes = await asyncio.gather(
            *(run(name) for name in to_process), return_exceptions=True
        )

        # gather() keeps input order, so updates follow detection order
        for name, outcome in zip(to_process, outcomes):
            if isinstance(outcome, ListingAssistantError):
                logger.warning(f"Field extraction failed for {name}: {outcome}")
                result.failed.append(name)
                continue
            if isinstance(outcome, Exception):
                logger.error(
                    f"Unexpected error extracting {name}: {type(outcome).__name__}: {outcome}"
                )
                result.failed.append(name)
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            value, raw = outcome
            result.raw_responses[name] = raw
            if value is None:
                logger.debug(f"Rejected value for {name}: {raw[:100]!r}")
                result.rejected.append(name)
                continue

            result.form_updates[name] = value
            result.field_updates.append(
                FieldUpdate(field=name, value=value, reason=FIELD_REASONS[name])
            )

        logger.info(
            "Per-field extraction completed",
            extra={
                "fields_detected": candidates,
                "fields_accepted": list(result.form_updates),
                "fields_skipped": result.skipped,
                "fields_rejected": result.rejected,
                "fields_failed": result.failed,
            },
        )
        return result
