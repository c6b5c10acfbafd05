"""Unit tests for application settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_keyword_intelligence_requires_spyfu_key() -> None:
    assert Settings(spyfu_api_key=None).keyword_intelligence_enabled is False
    assert Settings(spyfu_api_key="key").keyword_intelligence_enabled is True


@pytest.mark.parametrize("field", ["enrichment_deadline_ms", "hook_cap", "hook_max_per_competitor"])
def test_orchestration_limits_must_be_positive(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ('"https://a.example"', ["https://a.example"]),
        ("", []),
    ],
)
def test_cors_origins_accepts_json_or_csv(monkeypatch: pytest.MonkeyPatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    assert Settings().cors_origins == expected


def test_get_model_prefers_environment_override() -> None:
    settings = Settings(environment="production", llm_model_reasoning="openai:gpt-5", default_llm_model="test:default")

    assert settings.get_model("reasoning") == "openai:gpt-5"
    assert settings.get_model("fast") == "anthropic:claude-haiku-4-5"
    assert settings.get_model("unknown") == "test:default"
    assert Settings(environment="development", default_llm_model="test:default").get_model("standard") == "test:default"


def test_llm_timeout_falls_back_to_standard() -> None:
    settings = Settings(llm_timeout_standard=42)

    assert settings.get_llm_timeout("reasoning") == 600
    assert settings.get_llm_timeout("unknown") == 42
