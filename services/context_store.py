"""Session context store.

Holds the memory of one listing-creation conversation: the items being
listed, every interaction, what has been inferred about each item, and
preferences learned along the way. The store keeps no state between requests;
the caller sends the serialized context with each call and stores the
re-serialized context that comes back.
"""

import json
from datetime import UTC, datetime
from typing import Any, Mapping, Optional

from config import get_settings
from models.context import (
    ITEM_SCOPED_TAGS,
    FieldChange,
    Interaction,
    InteractionTag,
    ItemContext,
    SessionContext,
)
from services.attribute_inference import update_inferred_attributes
from services.field_validators import PRICE_FIELDS
from utils.logging import get_logger

logger = get_logger(__name__)

# Image-analysis tokens must be longer than this to count toward association
MIN_ASSOCIATION_TOKEN_LENGTH = 3
MIN_ASSOCIATION_TOKEN_MATCHES = 2


class SessionContextStore:
    """Operations over one SessionContext."""

    def __init__(self, context: Optional[SessionContext] = None):
        self.context = context or SessionContext()
        settings = get_settings()
        self.recent_session_interactions = settings.context_recent_session_interactions
        self.recent_item_interactions = settings.context_recent_item_interactions
        self.recent_field_changes = settings.context_recent_field_changes

    @classmethod
    def create(cls, initial_description: str = "") -> "SessionContextStore":
        """Start a fresh session with a generated id and the current time."""
        store = cls(SessionContext(initial_description=initial_description))
        logger.info(
            "Created listing session",
            extra={"session_id": store.context.session_id},
        )
        return store

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item_context(
        self,
        item_id: str,
        image_analysis: Optional[str] = None,
        user_description: Optional[str] = None,
    ) -> ItemContext:
        """Insert (or overwrite) an item and run attribute inference for it.

        Without a user description the session's initial description is used.
        """
        item = ItemContext(
            item_id=item_id,
            image_analysis=image_analysis,
            user_description=user_description or self.context.initial_description or None,
        )
        update_inferred_attributes(item)
        self.context.items[item_id] = item
        logger.debug(
            "Added item context",
            extra={
                "item_id": item_id,
                "inferred": item.inferred_attributes.present(),
            },
        )
        return item

    def get_item(self, item_id: Optional[str]) -> Optional[ItemContext]:
        if item_id is None:
            return None
        return self.context.items.get(item_id)

    def find_related_item(self, user_input: str) -> Optional[str]:
        """Return the first item (insertion order) the input appears to be about."""
        text = user_input.lower()

        for item_id, item in self.context.items.items():
            attributes = item.inferred_attributes
            if attributes.item_type and attributes.item_type in text:
                return item_id
            if attributes.brand and attributes.brand in text:
                return item_id

            tokens = [
                token
                for token in (item.image_analysis or "").lower().split()
                if len(token) > MIN_ASSOCIATION_TOKEN_LENGTH
            ]
            matches = sum(1 for token in tokens if token in text)
            if matches >= MIN_ASSOCIATION_TOKEN_MATCHES:
                return item_id

        return None

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def record_interaction(
        self,
        user_input: str,
        ai_response: str,
        field_changes: Mapping[str, FieldChange | Mapping[str, Any]],
        context: InteractionTag = "field_update",
    ) -> Interaction:
        """Stamp and append an interaction, attaching it to a related item.

        Only item_analysis and field_update interactions are attached to items.
        """
        changes = {
            field: FieldChange.model_validate(change)
            for field, change in field_changes.items()
        }
        timestamp = datetime.now(UTC)
        history = self.context.conversation_history
        if history and timestamp < history[-1].timestamp:
            timestamp = history[-1].timestamp

        interaction = Interaction(
            timestamp=timestamp,
            user_input=user_input,
            ai_response=ai_response,
            field_changes=changes,
            context=context,
        )
        history.append(interaction)

        related_item_id = None
        if context in ITEM_SCOPED_TAGS:
            related_item_id = self.find_related_item(user_input)
            if related_item_id is not None:
                item = self.context.items[related_item_id]
                item.interactions.append(interaction)
                update_inferred_attributes(item)

        logger.info(
            "Recorded interaction",
            extra={
                "interaction_id": interaction.id,
                "context_tag": context,
                "fields_changed": list(changes),
                "item_id": related_item_id,
            },
        )
        return interaction

    def update_global_preferences(self, accepted: Mapping[str, str]) -> None:
        """Learn session-wide preferences from accepted field values."""
        global_context = self.context.global_context

        if "duration_days" in accepted:
            global_context.user_preferences.default_duration = int(accepted["duration_days"])

        category_id = accepted.get("category_id")
        if category_id and category_id not in global_context.common_categories:
            global_context.common_categories.append(category_id)

        for field in PRICE_FIELDS:
            if field in accepted:
                global_context.price_patterns[field] = float(accepted[field])

    # ------------------------------------------------------------------
    # Grounding text
    # ------------------------------------------------------------------

    def get_context_for_ai(self, item_id: Optional[str] = None) -> str:
        """Render a plain-text summary for embedding in prompts."""
        context = self.context
        duration = int((datetime.now(UTC) - context.start_time).total_seconds())

        lines = [
            "Session Context:",
            f'- Initial Description: "{context.initial_description}"',
            f"- Session Duration: {max(duration, 0)} seconds",
            f"- Total Items: {len(context.items)}",
        ]

        item = self.get_item(item_id)
        if item is not None:
            lines += [
                "",
                "Item-Specific Context:",
                f"- Image Analysis: {item.image_analysis or ''}",
                f"- User Description: {item.user_description or ''}",
                f"- Previous Interactions: {len(item.interactions)}",
            ]
            attributes = item.inferred_attributes.present()
            if attributes:
                lines.append(f"- Inferred Attributes: {json.dumps(attributes)}")

            recent = item.interactions[-self.recent_item_interactions:]
            if recent:
                lines += ["", "Recent Interactions:"]
                for i, interaction in enumerate(recent, 1):
                    changes = {
                        field: change.to for field, change in interaction.field_changes.items()
                    }
                    lines.append(
                        f'{i}. User: "{interaction.user_input}" -> Changes: {json.dumps(changes)}'
                    )

        recent_history = context.conversation_history[-self.recent_session_interactions:]
        if recent_history:
            lines += ["", "Recent Conversation:"]
            for i, interaction in enumerate(recent_history, 1):
                fields = ", ".join(interaction.field_changes) or "no changes"
                lines.append(f'{i}. "{interaction.user_input}" -> {fields}')

        preferences = self._render_preferences()
        if preferences:
            lines += ["", "User Preferences:", *preferences]

        return "\n".join(lines) + "\n"

    def _render_preferences(self) -> list[str]:
        global_context = self.context.global_context
        lines = []
        if global_context.user_preferences.default_duration:
            lines.append(
                f"- Default Duration: {global_context.user_preferences.default_duration} days"
            )
        if global_context.common_categories:
            lines.append(f"- Common Categories: {', '.join(global_context.common_categories)}")
        if global_context.price_patterns:
            patterns = ", ".join(
                f"{field}={value:.2f}" for field, value in global_context.price_patterns.items()
            )
            lines.append(f"- Price Patterns: {patterns}")
        return lines

    def get_field_context(self, field: str, item_id: Optional[str] = None) -> str:
        """Render prior changes to one field plus the item's type/category/brand."""
        lines = [f'Field Update Context for "{field}":']

        previous = [
            interaction
            for interaction in self.context.conversation_history
            if field in interaction.field_changes
        ][-self.recent_field_changes:]
        if previous:
            lines.append(f"Previous {field} updates:")
            for i, interaction in enumerate(previous, 1):
                change = interaction.field_changes[field]
                lines.append(f'{i}. "{interaction.user_input}" -> "{change.to}" ({change.reason})')

        item = self.get_item(item_id)
        if item is not None:
            attributes = item.inferred_attributes
            lines += [
                "",
                "Item Context:",
                f"- Type: {attributes.item_type or 'unknown'}",
                f"- Category: {attributes.category or 'unknown'}",
                f"- Brand: {attributes.brand or 'unknown'}",
            ]

        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """Plain JSON-safe dict: camelCase keys, ISO-8601 timestamps."""
        return self.context.model_dump(mode="json", by_alias=True)

    @classmethod
    def deserialize(cls, blob: Mapping[str, Any]) -> "SessionContextStore":
        """Rebuild a store from serialize() output.

        Raises:
            pydantic.ValidationError: If the blob is not a session context
        """
        return cls(SessionContext.model_validate(blob))

    def export_context(self) -> str:
        """Serialized context as indented JSON, for debugging."""
        return json.dumps(self.serialize(), indent=2)
