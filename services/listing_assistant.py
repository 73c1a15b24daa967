"""Listing assistant: one inference call from utterance to updated context.

Each call runs one sequential chain:

    deserialize context -> detect fields -> completion call(s) -> validate
    -> merge -> record -> re-serialize context

No state is kept between calls. The caller sends the serialized context with
each request and stores the context returned in the result.
"""

from dataclasses import dataclass, field as dc_field
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from config import get_settings
from models.schemas import Category, FieldUpdate
from services.combined_parser import CombinedParser
from services.context_store import SessionContextStore
from services.field_extractor import FieldExtractor
from services.form_analysis import find_missing_fields, generate_suggestions
from services.listing_enhancer import EnhancementResult, ListingEnhancer
from services.llm import LLMClient, get_llm_client
from services.update_merger import UpdateMerger
from utils.logging import get_logger, session_id_var

logger = get_logger(__name__)


@dataclass
class ParseResult:
    """Outcome of one inference call. Always well-formed."""
    success: bool
    form_updates: dict[str, str] = dc_field(default_factory=dict)
    field_updates: list[FieldUpdate] = dc_field(default_factory=list)
    context_used: str = ""
    updated_context: dict[str, Any] = dc_field(default_factory=dict)
    missing_fields: list[str] = dc_field(default_factory=list)
    suggestions: list[str] = dc_field(default_factory=list)


def load_context(
    blob: Optional[Mapping[str, Any]],
    initial_description: Optional[str] = None,
) -> SessionContextStore:
    """Restore the caller's context, or start a new session.

    A blob that does not deserialize is replaced by a fresh session.
    """
    if blob:
        try:
            store = SessionContextStore.deserialize(blob)
        except ValidationError as e:
            logger.warning(
                "Discarding invalid session context",
                extra={"error_count": e.error_count()},
            )
        else:
            session_id_var.set(store.context.session_id)
            return store

    store = SessionContextStore.create(initial_description or "")
    session_id_var.set(store.context.session_id)
    return store


class ListingAssistant:
    """Entry points for both extraction modes, enhancement and context management."""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or get_llm_client()
        self.settings = get_settings()
        self.field_extractor = FieldExtractor(self.llm)
        self.combined_parser = CombinedParser(self.llm)
        self.enhancer = ListingEnhancer(self.llm)

    def _finish(
        self,
        success: bool,
        store: SessionContextStore,
        form: Mapping[str, str],
        form_updates: dict[str, str],
        field_updates: list[FieldUpdate],
        context_used: str,
    ) -> ParseResult:
        missing = find_missing_fields(form, form_updates)
        return ParseResult(
            success=success,
            form_updates=form_updates,
            field_updates=field_updates,
            context_used=context_used,
            updated_context=store.serialize(),
            missing_fields=missing,
            suggestions=generate_suggestions(missing, form_updates),
        )

    async def parse_fields(
        self,
        utterance: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        context: Optional[Mapping[str, Any]] = None,
        initial_description: Optional[str] = None,
        item_id: Optional[str] = None,
        target_field: Optional[str] = None,
    ) -> ParseResult:
        """Per-field mode: one completion call per relevant field."""
        store = load_context(context, initial_description)
        field_context = store.get_field_context(target_field, item_id) if target_field else ""

        extraction = await self.field_extractor.extract(
            utterance,
            form,
            categories,
            target_field=target_field,
            field_context=field_context,
        )

        merger = UpdateMerger(store, categories, self.settings.category_match_threshold)
        merged = merger.apply(
            utterance,
            form,
            extraction.form_updates,
            extraction.field_updates,
            ai_response="\n".join(
                f"{name}: {raw.strip()}" for name, raw in extraction.raw_responses.items()
            ),
            tag="field_update" if target_field else "item_analysis",
            target_field=target_field,
        )

        return self._finish(
            extraction.upstream_ok,
            store,
            form,
            merged.form_updates,
            merged.field_updates,
            field_context,
        )

    async def parse_contextual(
        self,
        utterance: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        context: Optional[Mapping[str, Any]] = None,
        initial_description: Optional[str] = None,
        item_id: Optional[str] = None,
        target_field: Optional[str] = None,
    ) -> ParseResult:
        """Combined mode: one contextual call, with repair and fallback."""
        store = load_context(context, initial_description)
        context_text = store.get_context_for_ai(item_id)
        if target_field:
            context_text += "\n" + store.get_field_context(target_field, item_id)

        combined = await self.combined_parser.parse(utterance, form, categories, context_text)

        merger = UpdateMerger(store, categories, self.settings.category_match_threshold)
        merged = merger.apply(
            utterance,
            form,
            combined.form_updates,
            combined.field_updates,
            ai_response=combined.raw_response,
            tag="field_update" if target_field else "item_analysis",
            target_field=target_field,
        )

        logger.info(
            "Contextual parse completed",
            extra={
                "strategy": combined.strategy,
                "used_fallback": combined.used_fallback,
                "fields_accepted": list(merged.form_updates),
            },
        )
        return self._finish(
            combined.succeeded,
            store,
            form,
            merged.form_updates,
            merged.field_updates,
            context_text,
        )

    async def enhance_listing(
        self,
        enhancement_type: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        raw_input: Optional[str] = None,
    ) -> EnhancementResult:
        """Suggest a drafted or polished listing. The session context is not involved."""
        return await self.enhancer.enhance(enhancement_type, form, categories, raw_input)

    def create_context(self, initial_description: str = "") -> SessionContextStore:
        return load_context(None, initial_description)

    def add_item(
        self,
        context: Optional[Mapping[str, Any]],
        item_id: str,
        image_analysis: str = "",
        user_description: Optional[str] = None,
    ) -> SessionContextStore:
        """Register an item with a session and infer its attributes."""
        store = load_context(context)
        store.add_item_context(item_id, image_analysis or None, user_description)
        return store


# Singleton instance
_listing_assistant: ListingAssistant | None = None


def get_listing_assistant() -> ListingAssistant:
    """Get the listing assistant singleton."""
    global _listing_assistant
    if _listing_assistant is None:
        _listing_assistant = ListingAssistant()
    return _listing_assistant
