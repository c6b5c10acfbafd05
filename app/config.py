"""Service configuration loaded with pydantic-settings."""

import json
from functools import lru_cache
from typing import Annotated, ClassVar, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Blueprint service settings, read from the environment or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    app_name: str = "BlueprintEngine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    api_v1_prefix: str = "/api/v1"
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]

    # LLM
    default_llm_model: str = "anthropic:claude-sonnet-4-5"
    llm_model_reasoning: str | None = None
    llm_model_standard: str | None = None
    llm_model_fast: str | None = None
    llm_max_retries: int = 3
    llm_timeout_fast: int = 120
    llm_timeout_standard: int = 300
    llm_timeout_reasoning: int = 600
    # Rough blended pricing, used only for the running cost estimate
    llm_cost_per_1k_input_tokens: float = 0.003
    llm_cost_per_1k_output_tokens: float = 0.015

    _TIER_DEFAULTS: ClassVar[dict[str, dict[str, str]]] = {
        "development": {"fast": "anthropic:claude-haiku-4-5"},
        "staging": {"fast": "anthropic:claude-haiku-4-5"},
        "production": {
            "reasoning": "anthropic:claude-sonnet-4-5",
            "standard": "anthropic:claude-sonnet-4-5",
            "fast": "anthropic:claude-haiku-4-5",
        },
    }

    # Orchestration
    enrichment_deadline_ms: int = 60_000
    cancel_jobs_on_disconnect: bool = True
    full_tier_competitor_limit: int = 3
    full_tier_ad_limit: int = 50
    summary_tier_ad_limit: int = 5

    # Hook curation
    hook_cap: int = 8
    hook_max_per_competitor: int = 2
    hook_quota_slack: int = 1
    hook_extraction_max_ads: int = 20

    # Third-party data providers
    spyfu_api_key: str | None = None
    spyfu_cost_per_row: float = 0.0005
    searchapi_api_key: str | None = None
    pagespeed_api_key: str | None = None
    review_scrape_cost_per_page: float = 0.0
    http_timeout_seconds: float = 30.0

    # Circuit breaker (upstream LLM providers)
    circuit_breaker_failure_threshold: int = 3
    circuit_breaker_reset_seconds: float = 30.0

    def get_model(self, tier: str = "standard") -> str:
        """Model string for a tier: explicit ``LLM_MODEL_<TIER>`` override, then the
        environment's default, then ``default_llm_model``.
        """
        override = getattr(self, f"llm_model_{tier}", None)
        if isinstance(override, str) and override:
            return override
        return self._TIER_DEFAULTS.get(self.environment, {}).get(tier, self.default_llm_model)

    def get_llm_timeout(self, tier: str = "standard") -> int:
        """LLM request timeout in seconds for a tier."""
        return getattr(self, f"llm_timeout_{tier}", self.llm_timeout_standard)

    @property
    def keyword_intelligence_enabled(self) -> bool:
        return bool(self.spyfu_api_key)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: object) -> object:
        """Accept a JSON array, a JSON string or a comma-separated list."""
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            try:
                value = json.loads(raw)
            except json.JSONDecodeError:
                value = raw.split(",")
            if isinstance(value, str):
                value = [value]
        if not isinstance(value, list | tuple):
            raise ValueError("CORS_ORIGINS must be a JSON array, a JSON string or a comma-separated string")
        origins = (str(origin).strip().strip("'\"") for origin in value)
        return [origin for origin in origins if origin]

    @field_validator("enrichment_deadline_ms", "hook_cap", "hook_max_per_competitor")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Value must be a positive integer")
        return value


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
