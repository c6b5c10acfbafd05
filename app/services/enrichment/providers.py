"""Default wiring of the enrichment providers."""

from app.services.blueprint.enrichment import EnrichmentProviders
from app.services.enrichment.competitors import CompetitorEnrichmentService
from app.services.enrichment.hooks import HookExtractionService, HookRelevanceService
from app.services.enrichment.keywords import KeywordIntelligenceService
from app.services.enrichment.seo_audit import SEOAuditService


def build_enrichment_providers() -> EnrichmentProviders:
    return EnrichmentProviders(
        competitors=CompetitorEnrichmentService(),
        keywords=KeywordIntelligenceService(),
        seo=SEOAuditService(),
        hook_extraction=HookExtractionService(),
        hook_relevance=HookRelevanceService(),
    )
