"""
Tests for risk scoring.
"""

import itertools

import pytest

from kybrisk.checks.sanctions import SanctionsResult
from kybrisk.refdata.records import AggregateRecord, InsolvencyRecord, RegistryRecord, TaxRatingRecord
from kybrisk.scoring import RiskLevel, classify, has_poor_rating, score


def make_aggregate(is_active=True, insolvent=False, rating=None):
    """Build an aggregate with the given risk signals."""
    registry = RegistryRecord(
        name="SIA Alfa",
        address="Rīga",
        registered="2001-01-15",
        type_text="Sabiedrība ar ierobežotu atbildību",
        terminated="" if is_active else "2020-06-30",
        is_active=is_active,
    )
    tax = TaxRatingRecord(rating=rating, explanation="") if rating is not None else None
    insolvency = InsolvencyRecord(proceeding_resolution_name="Process") if insolvent else None
    return AggregateRecord.merge("40003000000", registry, tax, insolvency)


CLEAN = SanctionsResult()
SANCTIONED = SanctionsResult(is_sanctioned=True, sources=["sanction"])


def test_clean_company_is_low():
    """Test that a company without any signal scores 0 and LOW."""
    result = score(make_aggregate(rating="A"), CLEAN)

    assert result.numeric_score == 0
    assert result.level is RiskLevel.LOW


@pytest.mark.asyncio
async def test_sample_company_is_low(ready_engine):
    """Test the active, solvent, well-rated sample company."""
    result = score(ready_engine.get_aggregate("40003000000"), CLEAN)

    assert result.numeric_score == 0
    assert result.level is RiskLevel.LOW


def test_all_registry_signals_are_critical():
    """Test that inactive, insolvent and sanctioned adds up uncapped."""
    result = score(make_aggregate(is_active=False, insolvent=True), SANCTIONED)

    assert result.numeric_score == 120
    assert result.level is RiskLevel.CRITICAL


@pytest.mark.parametrize("aggregate_kwargs,sanctions,expected", [
    ({"is_active": False}, CLEAN, 30),
    ({"insolvent": True}, CLEAN, 40),
    ({}, SANCTIONED, 50),
    ({"rating": "Poor compliance history"}, CLEAN, 20),
])
def test_single_signal_contributions(aggregate_kwargs, sanctions, expected):
    """Test the contribution of each signal on its own."""
    assert score(make_aggregate(**aggregate_kwargs), sanctions).numeric_score == expected


def test_poor_rating_is_case_insensitive():
    """Test that any casing of "poor" counts as a poor rating."""
    assert has_poor_rating("Poor compliance history")
    assert has_poor_rating("POOR")
    assert has_poor_rating("rated poorly")
    assert not has_poor_rating("Good")
    assert not has_poor_rating("")
    assert not has_poor_rating(None)


def test_reputation_score_weight():
    """Test that the adverse media score counts at 30%."""
    assert score(make_aggregate(), CLEAN, reputation_score=100).numeric_score == pytest.approx(30)
    assert score(make_aggregate(), CLEAN, reputation_score=50).numeric_score == pytest.approx(15)
    assert score(make_aggregate(), CLEAN, reputation_score=None).numeric_score == 0


@pytest.mark.parametrize("numeric_score,level", [
    (0, RiskLevel.LOW),
    (24.9, RiskLevel.LOW),
    (25, RiskLevel.MEDIUM),
    (49.9, RiskLevel.MEDIUM),
    (50, RiskLevel.HIGH),
    (79.9, RiskLevel.HIGH),
    (80, RiskLevel.CRITICAL),
    (140, RiskLevel.CRITICAL),
])
def test_classify_thresholds(numeric_score, level):
    """Test the level boundaries."""
    assert classify(numeric_score) is level


def test_score_is_monotonic():
    """Test that adding a signal never lowers the score or the level."""
    order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]

    def run(inactive, insolvent, sanctioned, poor):
        return score(
            make_aggregate(is_active=not inactive, insolvent=insolvent, rating="poor" if poor else "A"),
            SANCTIONED if sanctioned else CLEAN
        )

    for flags in itertools.product([False, True], repeat=4):
        base = run(*flags)
        for i, flag in enumerate(flags):
            if flag:
                continue
            raised = list(flags)
            raised[i] = True
            more = run(*raised)
            assert more.numeric_score >= base.numeric_score
            assert order.index(more.level) >= order.index(base.level)
