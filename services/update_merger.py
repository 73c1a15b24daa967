"""Update merge and recording.

Merges the flat and itemized updates of one call, validates every value,
applies the field guard, and records a single Interaction in the session
context. Nothing reaches the form without passing its field validator here,
whichever extraction path produced it.
"""

from dataclasses import dataclass, field as dc_field
from typing import Any, Iterable, Mapping, Optional, Sequence

from models.context import FieldChange, Interaction, InteractionTag
from models.schemas import FORM_FIELDS, Category, FieldUpdate
from services.category_matcher import DEFAULT_MATCH_THRESHOLD
from services.context_store import SessionContextStore
from services.field_extractor import should_skip_field
from services.field_prompts import FIELD_REASONS
from services.field_validators import validate_field_value
from utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ProposedUpdate:
    value: Any
    reason: str = ""
    confidence: Optional[float] = None


@dataclass
class MergeResult:
    form_updates: dict[str, str] = dc_field(default_factory=dict)
    field_updates: list[FieldUpdate] = dc_field(default_factory=list)
    changes: dict[str, FieldChange] = dc_field(default_factory=dict)
    rejected: list[str] = dc_field(default_factory=list)
    blocked: list[str] = dc_field(default_factory=list)
    interaction: Optional[Interaction] = None


def merge_updates(
    form_updates: Mapping[str, Any],
    field_updates: Iterable[FieldUpdate | Mapping[str, Any]],
) -> dict[str, ProposedUpdate]:
    """Combine flat and itemized updates; itemized entries win on collision.

    Order is flat-update order, followed by fields only the itemized list names.
    """
    merged: dict[str, ProposedUpdate] = {
        str(name): ProposedUpdate(value) for name, value in form_updates.items()
    }
    for update in field_updates:
        if isinstance(update, FieldUpdate):
            update = update.model_dump()
        name = str(update.get("field", ""))
        merged[name] = ProposedUpdate(
            update.get("value"),
            str(update.get("reason") or ""),
            update.get("confidence"),
        )
    return merged


class UpdateMerger:
    """Validates merged updates and records them in the session context."""

    def __init__(
        self,
        store: SessionContextStore,
        categories: Sequence[Category] = (),
        category_threshold: int = DEFAULT_MATCH_THRESHOLD,
    ):
        self.store = store
        self.categories = list(categories)
        self.category_threshold = category_threshold

    def apply(
        self,
        utterance: str,
        form: Mapping[str, str],
        form_updates: Mapping[str, Any],
        field_updates: Iterable[FieldUpdate | Mapping[str, Any]],
        ai_response: str = "",
        tag: InteractionTag = "field_update",
        target_field: Optional[str] = None,
    ) -> MergeResult:
        """Merge, validate, guard and record one call's updates.

        The form itself is not mutated; the accepted values are returned for
        the caller to apply. The session context only changes when at least
        one value was accepted.
        """
        result = MergeResult()

        for name, proposed in merge_updates(form_updates, field_updates).items():
            if name not in FORM_FIELDS:
                result.rejected.append(name)
                continue
            if should_skip_field(name, utterance, form, target_field):
                result.blocked.append(name)
                continue

            value = validate_field_value(
                name, proposed.value, self.categories, self.category_threshold
            )
            if value is None:
                result.rejected.append(name)
                continue

            reason = proposed.reason or FIELD_REASONS[name]
            result.form_updates[name] = value
            result.field_updates.append(
                FieldUpdate(
                    field=name,
                    value=value,
                    reason=reason,
                    confidence=proposed.confidence,
                )
            )

            previous = form.get(name) or ""
            if previous != value:
                result.changes[name] = FieldChange(from_value=previous, to=value, reason=reason)

        if result.form_updates:
            result.interaction = self.store.record_interaction(
                user_input=utterance,
                ai_response=ai_response,
                field_changes=result.changes,
                context=tag,
            )
            self.store.update_global_preferences(result.form_updates)

        if result.rejected or result.blocked:
            logger.info(
                "Dropped proposed updates",
                extra={"rejected": result.rejected, "blocked": result.blocked},
            )
        return result
