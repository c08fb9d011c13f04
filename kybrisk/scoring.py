"""
Risk scoring for company aggregates.

Adds up independent risk signals into a numeric score and maps it onto a
four-level classification. The numeric score is not capped: several signals
together can exceed 100, and the level alone conveys severity.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kybrisk.checks.sanctions import SanctionsResult
from kybrisk.refdata.records import AggregateRecord

logger = logging.getLogger("kybrisk.scoring")

INACTIVE_POINTS = 30
INSOLVENCY_POINTS = 40
SANCTIONED_POINTS = 50
POOR_RATING_POINTS = 20
MEDIA_WEIGHT = 0.3

POOR_RATING_MARKER = "poor"


class RiskLevel(str, Enum):
    """Overall risk classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Lower bounds, highest first
LEVEL_THRESHOLDS = (
    (80, RiskLevel.CRITICAL),
    (50, RiskLevel.HIGH),
    (25, RiskLevel.MEDIUM),
)


@dataclass(frozen=True)
class RiskScore:
    """Numeric risk score and its classification."""
    numeric_score: float
    level: RiskLevel


def classify(numeric_score: float) -> RiskLevel:
    """Map a numeric score to a risk level."""
    for threshold, level in LEVEL_THRESHOLDS:
        if numeric_score >= threshold:
            return level
    return RiskLevel.LOW


def has_poor_rating(rating: Optional[str]) -> bool:
    return bool(rating) and POOR_RATING_MARKER in rating.lower()


def score(
    aggregate: AggregateRecord,
    sanctions: SanctionsResult,
    reputation_score: Optional[float] = None
) -> RiskScore:
    """Score a company.

    Contributions:
        - inactive in the registry: +30
        - insolvency record present: +40
        - sanctions hit: +50
        - tax rating mentioning "poor" (any case): +20
        - adverse media score (0-100), when supplied: 30% of it

    Args:
        aggregate: Registry, tax and insolvency data of the company
        sanctions: Sanctions check result
        reputation_score: Optional adverse media risk score

    Returns:
        RiskScore with the uncapped total and its level
    """
    total: float = 0

    if not aggregate.is_active:
        total += INACTIVE_POINTS

    if aggregate.has_insolvency:
        total += INSOLVENCY_POINTS

    if sanctions.is_sanctioned:
        total += SANCTIONED_POINTS

    if has_poor_rating(aggregate.rating):
        total += POOR_RATING_POINTS

    if reputation_score is not None:
        total += reputation_score * MEDIA_WEIGHT

    level = classify(total)
    logger.debug(f"Risk score for {aggregate.registration_number}: {total} ({level.value})")
    return RiskScore(numeric_score=total, level=level)
