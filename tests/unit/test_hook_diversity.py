"""Unit tests for hook diversity quotas, remediation and curation."""

from __future__ import annotations

from app.schemas.blueprint import AdCreative, CompetitorRecord, HookCandidate, HookQuota
from app.services.blueprint.hook_diversity import HookDiversityValidator


def _competitor(competitor_id: str, ads: int, tier: str = "full") -> CompetitorRecord:
    return CompetitorRecord(
        id=competitor_id,
        name=competitor_id.title(),
        tier=tier,
        ads=[
            AdCreative(headline=f"{competitor_id} ad {idx}", body="copy", source_competitor_id=competitor_id)
            for idx in range(ads)
        ],
    )


def _extracted(competitor_id: str, text: str) -> HookCandidate:
    return HookCandidate(text=text, provenance="extracted", source_competitor_id=competitor_id)


def _generated(text: str) -> HookCandidate:
    return HookCandidate(text=text, provenance="generated")


def _validator() -> HookDiversityValidator:
    return HookDiversityValidator(cap=8, hard_ceiling=2, slack=1)


def test_distribution_is_proportional_with_floor_and_ceiling() -> None:
    quota = _validator().compute_distribution(
        [_competitor("alpha", 5), _competitor("beta", 1), _competitor("gamma", 0, tier="summary")]
    )

    assert quota.per_competitor == {"alpha": 2, "beta": 2, "gamma": 1}
    assert quota.quota_for("unknown") == 1


def test_distribution_without_any_ads_defaults_to_one() -> None:
    quota = _validator().compute_distribution([_competitor("alpha", 0), _competitor("beta", 0)])

    assert quota.per_competitor == {"alpha": 1, "beta": 1}


def test_validate_reports_excess_per_competitor() -> None:
    validator = _validator()
    quota = HookQuota(per_competitor={"alpha": 2}, hard_ceiling=2, cap=8)
    hooks = [_extracted("alpha", f"Alpha hook {idx}") for idx in range(5)]

    violations = validator.validate(hooks, quota)

    assert [(v.competitor_id, v.excess) for v in violations] == [("alpha", 3)]


def test_extraction_scenario_drops_three_and_backfills_three_generated() -> None:
    """Five hooks from A and one from B: three of A's are swapped for generated hooks."""
    validator = _validator()
    quota = validator.compute_distribution(
        [_competitor("alpha", 5), _competitor("beta", 1), _competitor("gamma", 0, tier="summary")]
    )
    hooks = [_extracted("alpha", f"Alpha hook {idx}") for idx in range(5)]
    hooks.append(_extracted("beta", "Beta hook"))
    generated = [_generated(f"Generated hook {idx}") for idx in range(4)]

    result = validator.remediate(hooks, validator.validate(hooks, quota), generated, quota)

    assert len(result) == len(hooks)
    assert [h.text for h in result if h.source_competitor_id == "alpha"] == ["Alpha hook 0", "Alpha hook 1"]
    assert [h.text for h in result if h.provenance == "generated"] == [
        "Generated hook 0",
        "Generated hook 1",
        "Generated hook 2",
    ]
    assert validator.validate(result, quota) == []


def test_remediate_keeps_shorter_list_when_pool_runs_out() -> None:
    validator = _validator()
    quota = HookQuota(per_competitor={"alpha": 1}, hard_ceiling=2, cap=8)
    hooks = [_extracted("alpha", "One"), _extracted("alpha", "Two"), _extracted("alpha", "Three")]

    result = validator.remediate(hooks, validator.validate(hooks, quota), [_generated("Four")], quota)

    assert [h.text for h in result] == ["One", "Four"]


def test_backfill_respects_quota_and_skips_duplicates() -> None:
    validator = _validator()
    quota = HookQuota(per_competitor={"alpha": 1, "beta": 1}, hard_ceiling=2, cap=8)
    hooks = [_extracted("alpha", "Alpha one"), _extracted("alpha", "Alpha two")]
    pool = [_extracted("alpha", "Alpha three"), _generated("alpha ONE"), _extracted("beta", "Beta one")]

    result = validator.remediate(hooks, validator.validate(hooks, quota), pool, quota)

    assert [h.text for h in result] == ["Alpha one", "Beta one"]


def test_swap_off_segment_replaces_flagged_hooks() -> None:
    validator = _validator()
    quota = HookQuota(per_competitor={"alpha": 2}, hard_ceiling=2, cap=8)
    hooks = [_extracted("alpha", "Pizza night deals"), _generated("Close books faster")]

    result = validator.swap_off_segment(
        hooks,
        {"pizza night deals"},
        [_generated("Audit-ready in a day")],
        quota,
    )

    assert [h.text for h in result] == ["Close books faster", "Audit-ready in a day"]


def test_curate_prefers_extracted_then_inspired_then_generated() -> None:
    validator = HookDiversityValidator(cap=3, hard_ceiling=2, slack=1)
    quota = HookQuota(per_competitor={"alpha": 2, "beta": 2}, hard_ceiling=2, cap=3)

    result = validator.curate(
        extracted=[_extracted("alpha", "Extracted")],
        inspired=[HookCandidate(text="Inspired", provenance="inspired", source_competitor_id="beta")],
        generated=[_generated("Generated one"), _generated("Generated two")],
        quota=quota,
    )

    assert [h.text for h in result] == ["Extracted", "Inspired", "Generated one"]


def test_curate_post_conditions_hold_with_flags_and_duplicates() -> None:
    validator = _validator()
    quota = validator.compute_distribution([_competitor("alpha", 9), _competitor("beta", 1)])
    extracted = [_extracted("alpha", f"Alpha {idx}") for idx in range(6)]
    extracted.append(_extracted("beta", "Beta 0"))
    inspired = [HookCandidate(text="alpha 0", provenance="inspired", source_competitor_id="alpha")]
    generated = [_generated(f"Generated {idx}") for idx in range(3)]

    result = validator.curate(extracted, inspired, generated, quota, flagged={"generated 0"})

    texts = [h.normalized_text for h in result]
    assert len(texts) == len(set(texts))
    assert "generated 0" not in texts
    assert validator.validate(result, quota) == []
    # distinct after filters: 2 alpha + 1 beta + 2 generated
    assert len(result) == 5


def test_curate_caps_result_length() -> None:
    validator = HookDiversityValidator(cap=2, hard_ceiling=2, slack=1)
    quota = HookQuota(cap=2, hard_ceiling=2)

    result = validator.curate([], [], [_generated(f"G{idx}") for idx in range(5)], quota)

    assert len(result) == 2
