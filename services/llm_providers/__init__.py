"""Completion providers.

Every supported backend speaks the OpenAI chat completions protocol, so a
single provider class serves them all; `llm_provider` only picks the default
base URL (overridden by `llm_base_url`).
"""

from config import get_settings
from services.llm_providers.base import BaseLLMProvider, Completion
from services.llm_providers.openai_compat import DEFAULT_BASE_URLS, OpenAICompatibleProvider

SUPPORTED_PROVIDERS = frozenset(DEFAULT_BASE_URLS)


def get_llm_provider(model: str | None = None) -> BaseLLMProvider:
    settings = get_settings()
    if settings.llm_provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported llm_provider {settings.llm_provider!r}; "
            f"expected one of: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
        )
    return OpenAICompatibleProvider(model=model)


__all__ = [
    "BaseLLMProvider",
    "Completion",
    "OpenAICompatibleProvider",
    "get_llm_provider",
]
