"""Completion-service client.

The rest of the service treats this client as an opaque prompt -> text
function. Whatever goes wrong upstream (connection loss, timeouts, rate
limits, 5xx, an unavailable model) surfaces as TransientUpstreamFailure
once retries and the optional fallback model are used up. Oversized prompts
are refused before any request is sent.
"""

import asyncio
import random
import re
from dataclasses import dataclass

from openai import APIConnectionError, APIStatusError, APITimeoutError

from config import get_settings
from models.errors import PromptTooLargeError, TransientUpstreamFailure
from services.llm_providers import BaseLLMProvider, Completion, get_llm_provider
from utils.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# 529: "overloaded" on some OpenAI-compatible gateways
FALLBACK_STATUS_CODES = {503, 529}
_FALLBACK_HINTS = ("model", "overloaded", "capacity", "unavailable")

# Role label and special tokens per chat message
MESSAGE_OVERHEAD_TOKENS = 10

# Closed blocks first, then an unclosed opener swallows the rest of the text
_THINKING_RE = re.compile(
    r"<(think|thinking)\b[^>]*>.*?</\1>\s*|<(?:think|thinking)\b[^>]*>.*\Z",
    re.DOTALL | re.IGNORECASE,
)


def strip_thinking_tags(text: str) -> str:
    """Remove <think>/<thinking> reasoning blocks emitted by reasoning models."""
    if not text:
        return text
    return _THINKING_RE.sub("", text).strip()


def estimate_tokens(text: str) -> int:
    """Rough token count: about 4 characters per token for English."""
    if not text:
        return 0
    return len(text) // 4 + 1


def is_transient(error: Exception) -> bool:
    if isinstance(error, (TimeoutError, ConnectionError, APIConnectionError, APITimeoutError)):
        return True
    return isinstance(error, APIStatusError) and error.status_code in RETRYABLE_STATUS_CODES


def wants_fallback(error: Exception) -> bool:
    """True for errors that say the model itself is unavailable."""
    if not isinstance(error, APIStatusError):
        return False
    if error.status_code in FALLBACK_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(hint in message for hint in _FALLBACK_HINTS)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with up to one second of jitter."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay) + random.uniform(0, 1)


class LLMClient:
    def __init__(self, provider: BaseLLMProvider | None = None):
        self.settings = get_settings()
        self.provider = provider or get_llm_provider()
        self.model = self.provider.model_name
        self.retry_policy = RetryPolicy(
            max_retries=self.settings.llm_max_retries,
            base_delay=self.settings.llm_retry_base_delay,
        )
        self._fallback_provider: BaseLLMProvider | None = None

    @property
    def fallback_model(self) -> str | None:
        if self.settings.llm_fallback_enabled and self.settings.llm_fallback_model:
            return self.settings.llm_fallback_model
        return None

    def _fallback(self) -> BaseLLMProvider | None:
        if self.fallback_model is None:
            return None
        if self._fallback_provider is None:
            self._fallback_provider = get_llm_provider(model=self.fallback_model)
        return self._fallback_provider

    def _check_prompt_size(self, messages: list[dict]) -> int:
        limit = self.settings.max_prompt_tokens
        estimated = sum(
            estimate_tokens(m.get("content", "")) + MESSAGE_OVERHEAD_TOKENS for m in messages
        )
        if estimated > limit:
            logger.error(
                "Prompt refused before sending",
                extra={"estimated_tokens": estimated, "max_prompt_tokens": limit},
            )
            raise PromptTooLargeError(estimated, limit)
        if estimated > limit * self.settings.prompt_warning_threshold:
            logger.warning(
                f"Prompt at {estimated / limit:.0%} of the {limit}-token limit",
                extra={"estimated_tokens": estimated},
            )
        return estimated

    def _record_usage(self, completion: Completion, operation: str) -> None:
        logger.info(
            "LLM token usage",
            extra={
                "token_usage": {
                    "model": completion.model,
                    "operation": operation,
                    "prompt_tokens": completion.prompt_tokens,
                    "completion_tokens": completion.completion_tokens,
                    "total_tokens": completion.total_tokens,
                }
            },
        )

    async def _complete_with_retries(
        self,
        provider: BaseLLMProvider,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
        max_retries: int,
        operation: str,
    ) -> str:
        """One provider, retried while errors stay transient. Re-raises the last error."""
        attempts = max_retries + 1
        for attempt in range(attempts):
            try:
                completion = await provider.complete(
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except Exception as e:
                if not is_transient(e) or attempt + 1 == attempts:
                    logger.error(
                        f"{operation} on {provider.model_name} failed after "
                        f"{attempt + 1} attempt(s): {type(e).__name__}"
                    )
                    raise
                delay = self.retry_policy.delay(attempt)
                logger.warning(
                    f"{operation} on {provider.model_name}: {type(e).__name__}, "
                    f"retry {attempt + 1}/{max_retries} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
            else:
                self._record_usage(completion, operation)
                return strip_thinking_tags(completion.text)
        raise AssertionError("unreachable")

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = 0.3,
        max_tokens: int = 600,
        max_retries: int | None = None,
        validate_size: bool = True,
        operation: str = "generate",
    ) -> str:
        """Complete one prompt.

        Args:
            prompt: User message
            system_prompt: Optional system message
            temperature: Sampling temperature
            max_tokens: Completion token budget; output may be cut off at it
            max_retries: Override for settings.llm_max_retries
            validate_size: Refuse prompts estimated above settings.max_prompt_tokens
            operation: Label for logs, e.g. "field:title" or "combined"

        Returns:
            Completion text with reasoning blocks removed; possibly empty

        Raises:
            PromptTooLargeError: The prompt was refused before sending
            TransientUpstreamFailure: The primary (and fallback) model failed
        """
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        if validate_size:
            self._check_prompt_size(messages)
        if max_retries is None:
            max_retries = self.retry_policy.max_retries

        try:
            return await self._complete_with_retries(
                self.provider, messages, temperature, max_tokens, max_retries, operation
            )
        except Exception as primary_error:
            fallback = self._fallback() if wants_fallback(primary_error) else None
            if fallback is None:
                raise TransientUpstreamFailure(
                    f"Completion call failed: {type(primary_error).__name__}",
                    cause=primary_error,
                ) from primary_error
            logger.warning(
                f"Falling back from {self.model} to {fallback.model_name}",
                extra={"operation": operation, "primary_error": type(primary_error).__name__},
            )

        try:
            return await self._complete_with_retries(
                fallback, messages, temperature, max_tokens, max_retries, f"{operation}_fallback"
            )
        except Exception as fallback_error:
            raise TransientUpstreamFailure(
                f"Completion call failed on primary and fallback models: "
                f"{type(fallback_error).__name__}",
                cause=fallback_error,
            ) from fallback_error


_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
