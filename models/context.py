"""Session context data model.

The context of one listing-creation conversation is owned by the caller and
sent back whole on every request. These models define the transport shape:
camelCase keys on the wire, snake_case attributes in Python, ISO-8601
timestamps, and a plain string-keyed dict of items that keeps insertion order.
"""

from datetime import UTC, datetime
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

InteractionTag = Literal["upload", "item_analysis", "field_update", "batch_operation"]

# Interactions of these kinds may be attached to a specific item
ITEM_SCOPED_TAGS: frozenset[str] = frozenset({"item_analysis", "field_update"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # Blobs written by other clients may carry naive timestamps
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ContextModel(BaseModel):
    """Base for context models: camelCase on the wire, either case accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldChange(ContextModel):
    from_value: str = Field("", alias="from")
    to: str
    reason: str = ""


class Interaction(ContextModel):
    """One recorded utterance/response/field-change event. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"interaction-{uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=_utcnow)
    user_input: str
    ai_response: str = ""
    field_changes: dict[str, FieldChange] = Field(default_factory=dict)
    context: InteractionTag = "field_update"

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class InferredAttributes(ContextModel):
    category: Optional[str] = None
    brand: Optional[str] = None
    item_type: Optional[str] = None
    era: Optional[str] = None
    condition: Optional[str] = None
    special_features: Optional[list[str]] = None

    def present(self) -> dict[str, str | list[str]]:
        """Return the attributes that currently hold a value."""
        return {
            name: value
            for name, value in self.model_dump().items()
            if value
        }


class ItemContext(ContextModel):
    item_id: str
    image_analysis: Optional[str] = None
    user_description: Optional[str] = None
    interactions: list[Interaction] = Field(default_factory=list)
    inferred_attributes: InferredAttributes = Field(default_factory=InferredAttributes)
    confidence_scores: dict[str, float] = Field(default_factory=dict)


class UserPreferences(ContextModel):
    default_duration: Optional[int] = None


class GlobalContext(ContextModel):
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)
    common_categories: list[str] = Field(default_factory=list)
    price_patterns: dict[str, float] = Field(default_factory=dict)


class SessionContext(ContextModel):
    session_id: str = Field(default_factory=lambda: f"session-{uuid4().hex}")
    start_time: datetime = Field(default_factory=_utcnow)
    initial_description: str = ""
    items: dict[str, ItemContext] = Field(default_factory=dict)
    global_context: GlobalContext = Field(default_factory=GlobalContext)
    conversation_history: list[Interaction] = Field(default_factory=list)

    @field_validator("start_time")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)
