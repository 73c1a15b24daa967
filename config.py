"""Settings, read from the environment and an optional .env file."""

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Completion service. Both providers speak the OpenAI protocol; an empty
    # llm_base_url means the provider's default endpoint.
    llm_provider: str = "openai"  # "openai" | "nvidia"
    llm_api_key: SecretStr = SecretStr("")
    llm_base_url: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_fallback_model: str = ""
    llm_fallback_enabled: bool = False
    llm_max_retries: int = 3
    llm_retry_base_delay: float = 1.0  # seconds, doubled per attempt

    # Prompts estimated above this (4 chars/token) are refused unsent
    max_prompt_tokens: int = 12000
    prompt_warning_threshold: float = 0.8

    # Completion budgets; answers may be cut off at these
    field_max_tokens: int = 100
    combined_max_tokens: int = 600
    fallback_max_tokens: int = 400
    field_temperature: float = 0.3
    combined_temperature: float = 0.3
    # Listing enhancement writes prose, so it gets more room and more variety
    enhance_max_tokens: int = 1500
    enhance_temperature: float = 0.7

    # 1 = per-field calls run strictly one after another
    max_concurrent_field_calls: int = 4

    # How much history goes into grounding text
    context_recent_session_interactions: int = 5
    context_recent_item_interactions: int = 3
    context_recent_field_changes: int = 3

    # rapidfuzz score (0-100) for mapping a category name onto its id
    category_match_threshold: int = 90

    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    @field_validator("llm_provider", mode="after")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("max_concurrent_field_calls", mode="after")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(v, 1)

    def get_llm_api_key(self) -> str:
        return self.llm_api_key.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    return Settings()
