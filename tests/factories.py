"""Test data factories for listing assistant tests.

These factories create realistic session contexts, interactions and
completion responses for unit tests.
"""

import json
import random
from datetime import UTC, datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

from models.context import FieldChange, Interaction, ItemContext, SessionContext


class InteractionFactory:
    """Factory for creating recorded interactions."""

    UTTERANCES = [
        "Starting price is $25",
        "Make it a 7 day auction",
        "The condition is excellent, barely worn",
        "Call it Retro Sony Walkman",
        "Reserve at 40 dollars",
    ]

    @classmethod
    def create(
        cls,
        user_input: Optional[str] = None,
        field_changes: Optional[dict[str, Any]] = None,
        context: str = "field_update",
        timestamp: Optional[datetime] = None,
    ) -> Interaction:
        """Create a test interaction."""
        changes = {
            field: FieldChange.model_validate(change)
            for field, change in (field_changes or {}).items()
        }
        return Interaction(
            timestamp=timestamp or datetime.now(UTC),
            user_input=user_input or random.choice(cls.UTTERANCES),
            ai_response="",
            field_changes=changes,
            context=context,
        )

    @classmethod
    def create_history(cls, count: int, start: Optional[datetime] = None) -> list[Interaction]:
        """Create `count` interactions one minute apart, oldest first."""
        start = start or datetime.now(UTC) - timedelta(minutes=count)
        return [
            cls.create(
                user_input=f"utterance {i}",
                field_changes={"title": {"from": "", "to": f"Title {i}", "reason": "test"}},
                timestamp=start + timedelta(minutes=i),
            )
            for i in range(count)
        ]


class SessionContextFactory:
    """Factory for creating session contexts."""

    @classmethod
    def create(
        cls,
        initial_description: str = "Vintage Nike shoes from 1985",
        items: Optional[dict[str, ItemContext]] = None,
        history: Optional[list[Interaction]] = None,
    ) -> SessionContext:
        """Create a test session context."""
        return SessionContext(
            session_id=f"session-{uuid4().hex}",
            initial_description=initial_description,
            items=items or {},
            conversation_history=history or [],
        )

    @classmethod
    def create_item(
        cls,
        item_id: Optional[str] = None,
        image_analysis: Optional[str] = None,
        user_description: Optional[str] = None,
    ) -> ItemContext:
        """Create an item with no inferred attributes yet."""
        return ItemContext(
            item_id=item_id or f"item-{uuid4().hex[:8]}",
            image_analysis=image_analysis,
            user_description=user_description,
        )


class CompletionResponseFactory:
    """Factory for raw combined-mode completion responses."""

    @classmethod
    def combined(
        cls,
        form_updates: Optional[dict[str, Any]] = None,
        field_updates: Optional[list[dict[str, Any]]] = None,
    ) -> str:
        """A well-formed combined-mode JSON response."""
        return json.dumps(
            {
                "formUpdates": form_updates or {},
                "fieldUpdates": field_updates or [],
            }
        )

    @classmethod
    def fenced(cls, payload: str, prose: str = "Here are the updates:") -> str:
        """Wrap a response in prose and a ```json code fence."""
        return f"{prose}\n```json\n{payload}\n```\nLet me know if you need anything else."

    @classmethod
    def truncated(cls, payload: str, keep: int) -> str:
        """Cut a response off after `keep` characters."""
        return payload[:keep]

    @classmethod
    def voice_listing(cls, **overrides: Any) -> str:
        """A voice_parse enhancement response for a vintage leather jacket."""
        data = {
            "title": "Vintage Brown Leather Bomber Jacket",
            "description": "Classic 1980s brown leather bomber jacket with a quilted lining, worn in one season of videos.",
            "suggested_category": "Fashion & Clothing",
            "suggested_condition": "like_new",
            "suggested_starting_price": 80,
            "suggested_buy_now_price": "150",
            "confidence_score": 85,
            "authenticity_highlights": ["Worn on camera", "Original receipt included"],
            "collector_appeal": ["Rare 1980s cut"],
        }
        data.update(overrides)
        return json.dumps(data)
