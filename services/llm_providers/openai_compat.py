"""Chat completions over the OpenAI protocol (OpenAI, NVIDIA NIM)."""

from openai import AsyncOpenAI

from config import get_settings
from services.llm_providers.base import BaseLLMProvider, Completion
from utils.logging import get_logger

logger = get_logger(__name__)

# None means the SDK's own default endpoint
DEFAULT_BASE_URLS: dict[str, str | None] = {
    "openai": None,
    "nvidia": "https://integrate.api.nvidia.com/v1",
}


class OpenAICompatibleProvider(BaseLLMProvider):
    def __init__(self, model: str | None = None):
        settings = get_settings()
        self.base_url = settings.llm_base_url or DEFAULT_BASE_URLS.get(settings.llm_provider)
        self._model = model or settings.llm_model
        # max_retries=0: the SDK must not retry behind LLMClient's back
        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=settings.get_llm_api_key() or None,
            max_retries=0,
        )
        logger.debug(
            "Completion provider ready",
            extra={
                "provider": settings.llm_provider,
                "model": self._model,
                "base_url": self.base_url or "default",
            },
        )

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        response = await self.client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        usage = response.usage
        return Completion(
            text=text,
            model=self._model,
            prompt_tokens=(usage.prompt_tokens or 0) if usage else 0,
            completion_tokens=(usage.completion_tokens or 0) if usage else 0,
        )
