# Models
from models.context import (
    FieldChange,
    GlobalContext,
    InferredAttributes,
    Interaction,
    InteractionTag,
    ItemContext,
    SessionContext,
    UserPreferences,
)
from models.schemas import FORM_FIELDS, REQUIRED_FIELDS, Category, FieldUpdate

__all__ = [
    "FieldChange",
    "GlobalContext",
    "InferredAttributes",
    "Interaction",
    "InteractionTag",
    "ItemContext",
    "SessionContext",
    "UserPreferences",
    "FORM_FIELDS",
    "REQUIRED_FIELDS",
    "Category",
    "FieldUpdate",
]
