"""Pydantic schemas for the listing assistant request boundary."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# The ten listing fields the assistant can fill
FORM_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "category_id",
    "condition",
    "starting_price",
    "reserve_price",
    "buy_now_price",
    "duration_days",
    "video_url",
    "video_timestamp",
)

# Fields a listing needs before it can be published
REQUIRED_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "category_id",
    "condition",
    "starting_price",
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(CamelModel):
    """An entry of the externally supplied category catalog."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)


class FieldUpdate(CamelModel):
    """One proposed field value with its reason and optional confidence."""

    field: str
    value: str
    reason: str = ""
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


def _normalize_form(v: Any) -> dict[str, str]:
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ValueError("currentForm must be an object of field names to values")
    return {
        str(key): "" if value is None else str(value)
        for key, value in v.items()
    }


class ParseRequest(CamelModel):
    """One natural-language utterance to apply to the listing form."""

    user_input: str = Field(..., min_length=1, max_length=5000)
    current_form: dict[str, str] = Field(default_factory=dict)
    categories: list[Category] = Field(default_factory=list, max_length=1000)
    context: Optional[dict[str, Any]] = Field(
        None, description="Serialized session context from the previous response"
    )
    initial_description: Optional[str] = Field(None, max_length=5000)
    item_id: Optional[str] = Field(None, max_length=200)
    target_field: Optional[str] = Field(None, max_length=50)

    @field_validator("user_input")
    @classmethod
    def strip_input(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("userInput must not be blank")
        return v

    @field_validator("current_form", mode="before")
    @classmethod
    def coerce_form_values(cls, v: Any) -> dict[str, str]:
        return _normalize_form(v)

    @field_validator("target_field")
    @classmethod
    def validate_target_field(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if v not in FORM_FIELDS:
            raise ValueError(f"targetField must be one of: {', '.join(FORM_FIELDS)}")
        return v


class ParseResponse(CamelModel):
    success: bool = True
    form_updates: dict[str, str] = Field(default_factory=dict)
    field_updates: list[FieldUpdate] = Field(default_factory=list)
    context_used: str = ""
    updated_context: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class EnhanceRequest(CamelModel):
    """Draft a listing from a spoken description, or polish the current form."""

    enhancement_type: Literal["voice_parse", "existing_enhance"] = "existing_enhance"
    raw_input: Optional[str] = Field(None, max_length=5000)
    current_form: dict[str, str] = Field(default_factory=dict)
    categories: list[Category] = Field(default_factory=list, max_length=1000)

    @field_validator("raw_input")
    @classmethod
    def strip_raw_input(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("current_form", mode="before")
    @classmethod
    def coerce_form_values(cls, v: Any) -> dict[str, str]:
        return _normalize_form(v)

    @model_validator(mode="after")
    def raw_input_for_voice_parse(self) -> "EnhanceRequest":
        if self.enhancement_type == "voice_parse" and not self.raw_input:
            raise ValueError("rawInput is required for voice_parse")
        return self


class EnhanceResponse(CamelModel):
    success: bool = True
    enhancement_type: str
    form_updates: dict[str, str] = Field(default_factory=dict)
    rejected_fields: list[str] = Field(default_factory=list)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    authenticity_highlights: list[str] = Field(default_factory=list)
    collector_appeal: list[str] = Field(default_factory=list)
    marketing_keywords: list[str] = Field(default_factory=list)
    suggested_improvements: list[str] = Field(default_factory=list)
    pricing_advice: str = ""
    missing_fields: list[str] = Field(default_factory=list)


class ContextCreateRequest(CamelModel):
    initial_description: str = Field("", max_length=5000)


class AddItemRequest(CamelModel):
    """Register an item (from image analysis) with a session context."""

    context: Optional[dict[str, Any]] = None
    item_id: str = Field(..., min_length=1, max_length=200)
    image_analysis: str = Field("", max_length=10000)
    user_description: Optional[str] = Field(None, max_length=5000)


class ContextResponse(CamelModel):
    context: dict[str, Any]
    context_text: str = ""
