"""Reusable API dependencies shared across v1 routes."""

from app.api.v1.dependencies.blueprint import (
    EnrichmentProvidersDep,
    PhaseRunnerDep,
    get_enrichment_providers,
    get_phase_runner,
)

__all__ = [
    "EnrichmentProvidersDep",
    "PhaseRunnerDep",
    "get_enrichment_providers",
    "get_phase_runner",
]
