"""Shared fixtures for blueprint orchestration tests."""

from __future__ import annotations

import pytest

from app.config import Settings
from app.schemas.blueprint import GenerationContext, OnboardingData
from app.services.blueprint.context import build_generation_context
from tests.unit.fakes import onboarding_payload


@pytest.fixture
def generation_context() -> GenerationContext:
    return build_generation_context(OnboardingData.model_validate(onboarding_payload()))


@pytest.fixture
def domainless_context() -> GenerationContext:
    payload = onboarding_payload(businessBasics={"businessName": "Ledgerly", "websiteUrl": "not a url"})
    return build_generation_context(OnboardingData.model_validate(payload))


@pytest.fixture
def run_config() -> Settings:
    return Settings(spyfu_api_key="test-key", enrichment_deadline_ms=200)
