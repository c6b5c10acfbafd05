"""Onboarding validation and generation-context building."""

import ipaddress
import re
from urllib.parse import urlparse

from app.config import settings
from app.schemas.blueprint import GenerationContext, OnboardingData

MAX_INPUT_LENGTH = 5000

_DOMAIN_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_INJECTION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)",
        r"disregard\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)",
        r"forget\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)",
        r"(system|assistant|user)\s*:\s*",
        r"\[\s*/?INST\s*\]",
        r"<\|im_(start|end)\|>",
        r"```\s*(json|javascript|python|bash|sh|cmd)",
    )
]
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_onboarding_data(data: OnboardingData) -> list[str]:
    """Return the list of missing required fields (empty when valid)."""
    errors: list[str] = []
    if not data.business_basics.business_name.strip():
        errors.append("Missing required field: businessBasics.businessName")
    if not data.icp.primary_icp_description.strip():
        errors.append("Missing required field: icp.primaryIcpDescription")
    if not data.product_offer.product_description.strip():
        errors.append("Missing required field: productOffer.productDescription")
    return errors


def sanitize_input(value: str | None) -> str:
    """Trim user text and neutralize prompt-injection markers."""
    if not value:
        return ""
    cleaned = str(value)[:MAX_INPUT_LENGTH]
    for pattern in _INJECTION_PATTERNS:
        cleaned = pattern.sub("[FILTERED]", cleaned)
    cleaned = cleaned.replace("```", "'''")
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    return cleaned.strip()


def _join(value: list[str] | str) -> str:
    if isinstance(value, list):
        return ", ".join(sanitize_input(v) for v in value if v) or "Not specified"
    return sanitize_input(value) or "Not specified"


def _money(value: float | None) -> str:
    if value is None or value < 0:
        return "0"
    return f"{value:g}"


def normalize_domain(value: str) -> str:
    """Normalize a user supplied website or host into a bare lowercase domain.

    Raises:
        ValueError: If the value is not a public hostname with a TLD.
    """
    raw = value.strip()
    if not raw:
        raise ValueError("Domain is required")

    has_scheme = bool(re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", raw))
    parsed = urlparse(raw if has_scheme else f"https://{raw}")
    if has_scheme and parsed.scheme.lower() not in {"http", "https"}:
        raise ValueError("Domain must use http/https if a scheme is provided")

    host = (parsed.hostname or "").strip().rstrip(".")
    if not host:
        raise ValueError("Invalid domain")

    try:
        host_ascii = host.encode("idna").decode("ascii").lower()
    except UnicodeError as exc:
        raise ValueError("Invalid domain") from exc

    try:
        ipaddress.ip_address(host_ascii)
    except ValueError:
        pass
    else:
        raise ValueError("IP addresses are not valid client domains")

    labels = host_ascii.split(".")
    if len(labels) < 2 or any(not _DOMAIN_LABEL_RE.match(label) for label in labels):
        raise ValueError("Invalid domain format")
    if not re.match(r"^[a-z]{2,63}$", labels[-1]):
        raise ValueError("Invalid top-level domain")

    if host_ascii.startswith("www."):
        host_ascii = host_ascii[4:]
    return host_ascii


def resolve_client_domain(website_url: str | None) -> str | None:
    """Return the normalized client domain, or None when it cannot be resolved."""
    if not website_url:
        return None
    try:
        return normalize_domain(website_url)
    except ValueError:
        return None


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower()).strip("-") or "competitor"


def parse_competitor_names(raw: str) -> list[str]:
    """Split the free-text competitor answer into distinct names, in order."""
    names: list[str] = []
    seen: set[str] = set()
    for part in re.split(r"[,;\n]+", raw or ""):
        name = sanitize_input(part).strip(" -*•")
        key = name.lower()
        if name and key not in seen:
            seen.add(key)
            names.append(name)
    return names


def build_business_digest(
    data: OnboardingData,
    full_tier_names: list[str] | tuple[str, ...] = (),
    summary_tier_names: list[str] | tuple[str, ...] = (),
) -> str:
    """Render onboarding answers into the prompt digest shared by every phase."""
    s = sanitize_input
    basics, icp, offer = data.business_basics, data.icp, data.product_offer
    market, journey = data.market_competition, data.customer_journey
    budget, compliance = data.budget_targets, data.compliance

    lines = [
        "## BUSINESS CONTEXT FOR STRATEGIC BLUEPRINT",
        "",
        "### Company Information",
        f"- Business Name: {s(basics.business_name)}",
        f"- Website: {s(basics.website_url)}",
        "",
        "### Ideal Customer Profile (ICP)",
        f"- Primary ICP: {s(icp.primary_icp_description)}",
        f"- Industry: {s(icp.industry_vertical)}",
        f"- Target Job Titles: {s(icp.job_titles)}",
        f"- Company Size: {_join(icp.company_size)}",
        f"- Geography: {s(icp.geography)}",
        f"- Easiest to Close: {s(icp.easiest_to_close)}",
        f"- Buying Triggers: {s(icp.buying_triggers)}",
    ]
    if icp.secondary_icp:
        lines.append(f"- Secondary ICP: {s(icp.secondary_icp)}")

    lines += ["", "### Product & Offer", f"- Product Description: {s(offer.product_description)}"]
    lines.append(f"- Core Deliverables: {s(offer.core_deliverables)}")
    if offer.pricing_tiers:
        lines.append("- Pricing Tiers:")
        for tier in offer.pricing_tiers:
            primary = " [PRIMARY]" if tier.is_primary else ""
            lines.append(f"  * {s(tier.name)}: ${_money(tier.price)}/{s(tier.billing_cycle)}{primary}")
    else:
        lines.append(f"- Offer Price: ${_money(offer.offer_price)}")
        lines.append(f"- Pricing Model: {_join(offer.pricing_model)}")
    lines.append(f"- Value Proposition: {s(offer.value_prop)}")
    if offer.guarantees:
        lines.append(f"- Guarantees: {s(offer.guarantees)}")

    lines += [
        "",
        "### Market & Competition",
        f"- Top Competitors: {s(market.top_competitors)}",
        f"- Unique Edge: {s(market.unique_edge)}",
        f"- Market Bottlenecks: {s(market.market_bottlenecks)}",
    ]
    if market.competitor_frustrations:
        lines.append(f"- Competitor Frustrations: {s(market.competitor_frustrations)}")
    if full_tier_names:
        lines.append(f"- Full-Analysis Competitors: {', '.join(full_tier_names)}")
    if summary_tier_names:
        lines.append(f"- Summary Competitors: {', '.join(summary_tier_names)}")

    lines += [
        "",
        "### Customer Journey",
        f"- Situation Before Buying: {s(journey.situation_before_buying)}",
        f"- Desired Transformation: {s(journey.desired_transformation)}",
        f"- Common Objections: {s(journey.common_objections)}",
        f"- Sales Cycle Length: {s(journey.sales_cycle_length)}",
        "",
        "### Budget & Targets",
        f"- Monthly Ad Budget: ${_money(budget.monthly_ad_budget)}",
        f"- Campaign Duration: {s(budget.campaign_duration)}",
    ]
    if budget.target_cpl is not None:
        lines.append(f"- Target CPL: ${_money(budget.target_cpl)}")
    if budget.target_cac is not None:
        lines.append(f"- Target CAC: ${_money(budget.target_cac)}")

    lines += [
        "",
        "### Compliance",
        f"- Topics to Avoid: {s(compliance.topics_to_avoid) or 'None specified'}",
        f"- Claim Restrictions: {s(compliance.claim_restrictions) or 'None specified'}",
    ]
    return "\n".join(lines).strip()


def build_generation_context(data: OnboardingData) -> GenerationContext:
    """Build the immutable per-request context from validated onboarding data."""
    names = parse_competitor_names(data.market_competition.top_competitors)
    limit = settings.full_tier_competitor_limit
    full_tier, summary_tier = names[:limit], names[limit:]

    return GenerationContext(
        business_digest=build_business_digest(data, full_tier, summary_tier),
        company_name=sanitize_input(data.business_basics.business_name),
        client_domain=resolve_client_domain(data.business_basics.website_url),
        target_segment=sanitize_input(data.icp.industry_vertical),
        icp_description=sanitize_input(data.icp.primary_icp_description),
        full_tier_names=tuple(full_tier),
        summary_tier_names=tuple(summary_tier),
    )
