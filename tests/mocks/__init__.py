"""Mock implementations for testing."""

from .llm_mock import MockLLMClient

__all__ = [
    "MockLLMClient",
]
