"""Collaborators injected into blueprint routes; tests override these."""

from typing import Annotated

from fastapi import Depends

from app.services.blueprint.controller import PhaseRunner
from app.services.blueprint.enrichment import EnrichmentProviders
from app.services.blueprint.phases import AgentPhaseRunner
from app.services.enrichment.providers import build_enrichment_providers


def get_phase_runner() -> PhaseRunner:
    return AgentPhaseRunner()


def get_enrichment_providers() -> EnrichmentProviders:
    return build_enrichment_providers()


PhaseRunnerDep = Annotated[PhaseRunner, Depends(get_phase_runner)]
EnrichmentProvidersDep = Annotated[EnrichmentProviders, Depends(get_enrichment_providers)]
