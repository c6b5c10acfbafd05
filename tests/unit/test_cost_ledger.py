"""Unit tests for per-request cost accounting."""

from app.services.blueprint.ledger import CostLedger


def test_ledger_records_each_key_once() -> None:
    ledger = CostLedger()

    assert ledger.record("competitorEnrichment", 0.12) is True
    assert ledger.record("competitorEnrichment", 0.12) is False
    assert ledger.record("discovery", 0.3) is True

    assert ledger.total == 0.42
    assert ledger.breakdown() == {"competitorEnrichment": 0.12, "discovery": 0.3}


def test_ledger_treats_missing_and_negative_cost_as_zero() -> None:
    ledger = CostLedger()

    ledger.record("seoAudit", None)
    ledger.record("hookExtraction", -1.0)

    assert ledger.has("seoAudit")
    assert ledger.total == 0.0
