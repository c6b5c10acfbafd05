"""Strategic blueprint schemas."""

from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SectionId = Literal[
    "industryMarketOverview",
    "icpAnalysisValidation",
    "offerAnalysisViability",
    "competitorAnalysis",
    "crossAnalysisSynthesis",
    "keywordIntelligence",
]
PhaseName = Literal["discovery", "deep_analysis", "synthesis"]
CompetitorTier = Literal["full", "summary"]
ResultStatus = Literal["success", "partial"]
HookProvenance = Literal["extracted", "inspired", "generated"]
ProgressStatus = Literal["starting", "complete", "error"]
EnrichmentTiming = Literal["inline", "late", "unavailable"]


class CamelModel(BaseModel):
    """Base for wire models exchanged with clients in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Request
# =============================================================================


class BusinessBasics(CamelModel):
    business_name: str = ""
    website_url: str = ""


class IcpInfo(CamelModel):
    primary_icp_description: str = ""
    industry_vertical: str = ""
    job_titles: str = ""
    company_size: list[str] | str = Field(default_factory=list)
    geography: str = ""
    easiest_to_close: str = ""
    buying_triggers: str = ""
    secondary_icp: str | None = None


class PricingTierInput(CamelModel):
    name: str = ""
    price: float = 0
    billing_cycle: str = "monthly"
    is_primary: bool = False


class ProductOffer(CamelModel):
    product_description: str = ""
    core_deliverables: str = ""
    offer_price: float | None = None
    pricing_model: list[str] | str = Field(default_factory=list)
    pricing_tiers: list[PricingTierInput] = Field(default_factory=list)
    value_prop: str = ""
    guarantees: str | None = None


class MarketCompetition(CamelModel):
    top_competitors: str = ""
    unique_edge: str = ""
    market_bottlenecks: str = ""
    competitor_frustrations: str | None = None


class CustomerJourney(CamelModel):
    situation_before_buying: str = ""
    desired_transformation: str = ""
    common_objections: str = ""
    sales_cycle_length: str = ""


class BudgetTargets(CamelModel):
    monthly_ad_budget: float | None = None
    campaign_duration: str = ""
    target_cpl: float | None = None
    target_cac: float | None = None


class Compliance(CamelModel):
    topics_to_avoid: str | None = None
    claim_restrictions: str | None = None


class OnboardingData(CamelModel):
    """Onboarding answers collected before a blueprint is generated."""

    business_basics: BusinessBasics = Field(default_factory=BusinessBasics)
    icp: IcpInfo = Field(default_factory=IcpInfo)
    product_offer: ProductOffer = Field(default_factory=ProductOffer)
    market_competition: MarketCompetition = Field(default_factory=MarketCompetition)
    customer_journey: CustomerJourney = Field(default_factory=CustomerJourney)
    budget_targets: BudgetTargets = Field(default_factory=BudgetTargets)
    compliance: Compliance = Field(default_factory=Compliance)


class BlueprintGenerateRequest(CamelModel):
    onboarding_data: OnboardingData | None = None


class GenerationContext(BaseModel):
    """Immutable per-request input shared by every phase and job."""

    model_config = ConfigDict(frozen=True)

    business_digest: str
    company_name: str
    client_domain: str | None = None
    target_segment: str = ""
    icp_description: str = ""
    full_tier_names: tuple[str, ...] = ()
    summary_tier_names: tuple[str, ...] = ()


# =============================================================================
# Competitors and enrichment
# =============================================================================


class AdCreative(CamelModel):
    headline: str = ""
    body: str = ""
    platform: str = "unknown"
    source_competitor_id: str
    link_url: str | None = None
    image_url: str | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.headline.strip() or self.body.strip())


class PricingTier(CamelModel):
    name: str
    price: str
    amount: float | None = None
    currency: str = "USD"
    usd_amount: float | None = None
    billing_cycle: str | None = None


class CustomerReview(CamelModel):
    rating: int
    text: str
    date: str | None = None


class ReviewSummary(CamelModel):
    source: str = "trustpilot"
    url: str | None = None
    rating: float | None = None
    review_count: int | None = None
    highlights: list[str] = Field(default_factory=list)
    reviews: list[CustomerReview] = Field(default_factory=list)


class CompetitorRecord(CamelModel):
    id: str
    name: str
    tier: CompetitorTier = "full"
    website: str | None = None
    positioning: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    reviews: ReviewSummary | None = None
    pricing: list[PricingTier] | None = None
    ads: list[AdCreative] = Field(default_factory=list)


class DiscoveryPayload(BaseModel):
    """Data handed to enrichment when discovery completes."""

    competitors: list[CompetitorRecord]
    client_domain: str | None = None


class EnrichmentResult(CamelModel):
    competitors: list[CompetitorRecord]
    cost: float = 0.0
    status: ResultStatus = "success"


class DomainStats(CamelModel):
    domain: str
    organic_keywords: int = 0
    monthly_organic_clicks: float = 0
    monthly_paid_clicks: float = 0
    monthly_budget: float = 0


class KeywordOpportunity(CamelModel):
    keyword: str
    search_volume: int = 0
    cpc: float = 0.0
    difficulty: int = 0
    competitor_domain: str | None = None
    competitor_rank: int | None = None
    quick_win: bool = False


class KeywordIntelligenceResult(CamelModel):
    client_domain: str
    domain_stats: list[DomainStats] = Field(default_factory=list)
    keyword_gaps: list[KeywordOpportunity] = Field(default_factory=list)
    quick_wins: list[KeywordOpportunity] = Field(default_factory=list)
    cost: float = 0.0
    status: ResultStatus = "success"


class PageCheck(CamelModel):
    name: str
    passed: bool
    detail: str = ""


class PageAudit(CamelModel):
    url: str
    checks: list[PageCheck] = Field(default_factory=list)
    score: int = 0


class PerformanceMetrics(CamelModel):
    score: int | None = None
    largest_contentful_paint_ms: float | None = None
    cumulative_layout_shift: float | None = None
    total_blocking_time_ms: float | None = None


class SEOAuditResult(CamelModel):
    url: str
    pages: list[PageAudit] = Field(default_factory=list)
    sitemap_found: bool = False
    robots_txt_found: bool = False
    performance: PerformanceMetrics | None = None
    technical_score: int = 0
    overall_score: int = 0
    cost: float = 0.0
    status: ResultStatus = "success"


# =============================================================================
# Hooks
# =============================================================================


class HookCandidate(CamelModel):
    text: str
    provenance: HookProvenance
    source_competitor_id: str | None = None
    technique: str | None = None
    awareness_level: str | None = None

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()

    @property
    def normalized_text(self) -> str:
        return " ".join(self.text.lower().split())


class HookExtractionResult(CamelModel):
    hooks: list[HookCandidate] = Field(default_factory=list)
    cost: float = 0.0


class HookRelevance(CamelModel):
    hook_index: int
    hook: str = ""
    relevant: bool = True
    reason: str = ""


class SegmentValidationResult(CamelModel):
    results: list[HookRelevance] = Field(default_factory=list)
    cost: float = 0.0

    @property
    def flagged_texts(self) -> set[str]:
        return {" ".join(r.hook.lower().split()) for r in self.results if not r.relevant and r.hook}


class KeywordIntelligenceInput(BaseModel):
    client_domain: str
    competitor_domains: list[str] = Field(default_factory=list)


class HookExtractionInput(BaseModel):
    company_name: str = ""
    ads: list[AdCreative]


class HookRelevanceInput(BaseModel):
    hooks: list[HookCandidate]
    target_segment: str
    icp_description: str = ""


class HookQuota(BaseModel):
    """Per-competitor hook caps derived from the ad distribution."""

    per_competitor: dict[str, int] = Field(default_factory=dict)
    default_quota: int = 1
    hard_ceiling: int = 2
    cap: int = 8

    def quota_for(self, competitor_id: str) -> int:
        return self.per_competitor.get(competitor_id, self.default_quota)


class Violation(BaseModel):
    competitor_id: str
    excess: int


# =============================================================================
# Generation phase outputs
# =============================================================================


class IndustryMarketOverview(CamelModel):
    category_snapshot: str = ""
    market_maturity: str = ""
    pain_points: list[str] = Field(default_factory=list)
    buying_behaviors: list[str] = Field(default_factory=list)
    market_dynamics: list[str] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)


class CompetitorSnapshot(CamelModel):
    name: str
    website: str | None = None
    positioning: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class CompetitorResearch(CamelModel):
    competitors: list[CompetitorSnapshot] = Field(default_factory=list)
    market_patterns: list[str] = Field(default_factory=list)
    white_space: list[str] = Field(default_factory=list)


class DiscoveryOutput(CamelModel):
    industry_market: IndustryMarketOverview
    competitor_research: CompetitorResearch
    competitors: list[CompetitorRecord] = Field(default_factory=list)


class ICPAnalysis(CamelModel):
    validation_status: Literal["validated", "workable", "invalid"] = "workable"
    summary: str = ""
    pain_points: list[str] = Field(default_factory=list)
    buying_triggers: list[str] = Field(default_factory=list)
    objections: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)


class OfferAnalysis(CamelModel):
    overall_score: float = Field(default=0, ge=0, le=10)
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class DeepAnalysisOutput(CamelModel):
    icp_analysis: ICPAnalysis
    offer_analysis: OfferAnalysis


class SynthesisHook(CamelModel):
    text: str
    technique: str | None = None
    awareness_level: str | None = None
    inspired_by: str | None = None


class CrossAnalysisSynthesis(CamelModel):
    key_insights: list[str] = Field(default_factory=list)
    positioning_strategy: str = ""
    messaging_angles: list[str] = Field(default_factory=list)
    hooks: list[SynthesisHook] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


PhaseDataT = TypeVar("PhaseDataT", bound=BaseModel)


class PhaseResult(BaseModel, Generic[PhaseDataT]):
    phase: PhaseName
    data: PhaseDataT
    cost: float = 0.0
    elapsed_ms: int = 0
    model: str = ""


class SynthesisInputs(BaseModel):
    """Enrichment data that made the synthesis deadline."""

    enriched_competitors: EnrichmentResult | None = None
    keyword_intelligence: KeywordIntelligenceResult | None = None
    seo_audit: SEOAuditResult | None = None


class InternalProgressEvent(BaseModel):
    job_id: str
    status: ProgressStatus
    message: str = ""
    elapsed_ms: int = 0
    cost: float = 0.0
    payload: Any = None


# =============================================================================
# Results
# =============================================================================


class CompetitorAnalysis(CamelModel):
    competitors: list[CompetitorRecord] = Field(default_factory=list)
    market_patterns: list[str] = Field(default_factory=list)
    white_space: list[str] = Field(default_factory=list)


class BlueprintDraft(CamelModel):
    """Pipeline output before late enrichment and hook curation."""

    industry_market_overview: IndustryMarketOverview
    icp_analysis_validation: ICPAnalysis
    offer_analysis_viability: OfferAnalysis
    competitor_analysis: CompetitorAnalysis
    cross_analysis_synthesis: CrossAnalysisSynthesis
    keyword_intelligence: KeywordIntelligenceResult | None = None
    seo_audit: SEOAuditResult | None = None
    enrichment_status: dict[str, bool] = Field(default_factory=dict)
    phase_costs: dict[str, float] = Field(default_factory=dict)
    models_used: list[str] = Field(default_factory=list)


class BlueprintMetadata(CamelModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    total_time_ms: int = 0
    total_cost: float = 0.0
    job_costs: dict[str, float] = Field(default_factory=dict)
    enrichment_status: dict[str, EnrichmentTiming] = Field(default_factory=dict)
    models_used: list[str] = Field(default_factory=list)


class StrategicBlueprint(CamelModel):
    industry_market_overview: IndustryMarketOverview
    icp_analysis_validation: ICPAnalysis
    offer_analysis_viability: OfferAnalysis
    competitor_analysis: CompetitorAnalysis
    cross_analysis_synthesis: CrossAnalysisSynthesis
    keyword_intelligence: KeywordIntelligenceResult | None = None
    seo_audit: SEOAuditResult | None = None
    hooks: list[HookCandidate] = Field(default_factory=list)
    metadata: BlueprintMetadata = Field(default_factory=BlueprintMetadata)


class PipelineResult(BaseModel):
    success: bool
    result: BlueprintDraft | None = None
    error: str | None = None
    error_code: str | None = None
