"""Provider interface: one chat completion in, one Completion out."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Completion:
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class BaseLLMProvider(ABC):
    """A chat-completions backend serving a single model.

    Providers make exactly one request per call and never retry; retry and
    model fallback belong to LLMClient.
    """

    @property
    @abstractmethod
    def model_name(self) -> str: ...

    @abstractmethod
    async def complete(
        self,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        """Send one chat completion request.

        Returns:
            Completion with empty text when the model produced no content
        """
