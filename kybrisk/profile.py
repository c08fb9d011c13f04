"""
Risk profile generation.

Combines the reference data aggregate of a company with the external checks
(sanctions, VIES, adverse media), scores it and stores the resulting profile.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kybrisk.checks.reputation import ReputationAnalyzer, ReputationResult
from kybrisk.checks.sanctions import SanctionsChecker, SanctionsResult
from kybrisk.checks.vies import ViesChecker, ViesResult
from kybrisk.refdata.engine import ReferenceDataEngine
from kybrisk.refdata.records import AggregateRecord
from kybrisk.repository import RiskProfileRepository, SubmissionRepository
from kybrisk.scoring import RiskScore, score

logger = logging.getLogger("kybrisk.profile")

UNKNOWN_COMPANY = "Unknown Company"


@dataclass
class RiskProfile:
    """Complete risk profile of a company."""
    registration_number: str
    company_name: str

    # Reference data
    address: str
    registered_date: str
    legal_form: str
    is_active: bool
    terminated_date: Optional[str]
    tax_rating: Optional[str]
    tax_explanation: Optional[str]
    rating_updated_date: Optional[str]
    has_insolvency: bool
    insolvency_details: Optional[str]
    proceeding_started_on: Optional[str]
    proceeding_ended_on: Optional[str]
    court_name: Optional[str]

    # External checks
    is_sanctioned: bool
    sanction_sources: List[str]
    sanction_details: Optional[str]
    is_pep: bool
    vat_valid: bool
    vat_address: Optional[str]
    adverse_media_risk_score: Optional[float]
    adverse_media_summary: Optional[str]
    adverse_media_mentions: Optional[int]
    adverse_media_sources: List[str] = field(default_factory=list)

    # Overall assessment
    overall_risk_score: float = 0
    overall_risk_level: str = "LOW"
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        company_name: str,
        aggregate: AggregateRecord,
        sanctions: SanctionsResult,
        vies: ViesResult,
        reputation: Optional[ReputationResult],
        risk: RiskScore
    ) -> "RiskProfile":
        return cls(
            registration_number=aggregate.registration_number,
            company_name=company_name,
            address=aggregate.address,
            registered_date=aggregate.registered,
            legal_form=aggregate.type_text,
            is_active=aggregate.is_active,
            terminated_date=aggregate.terminated or None,
            tax_rating=aggregate.rating,
            tax_explanation=aggregate.explanation,
            rating_updated_date=aggregate.rating_updated_date,
            has_insolvency=aggregate.has_insolvency,
            insolvency_details=aggregate.proceeding_resolution_name,
            proceeding_started_on=aggregate.proceeding_started_on,
            proceeding_ended_on=aggregate.proceeding_ended_on,
            court_name=aggregate.court_name,
            is_sanctioned=sanctions.is_sanctioned,
            sanction_sources=sanctions.sources,
            sanction_details=sanctions.details,
            is_pep=sanctions.is_pep,
            vat_valid=vies.is_valid,
            vat_address=vies.address,
            adverse_media_risk_score=reputation.risk_score if reputation else None,
            adverse_media_summary=reputation.summary if reputation else None,
            adverse_media_mentions=reputation.negative_mentions if reputation else None,
            adverse_media_sources=reputation.sources if reputation else [],
            overall_risk_score=risk.numeric_score,
            overall_risk_level=risk.level.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the profile as a JSON-serializable dict."""
        data = asdict(self)
        data["checked_at"] = self.checked_at.isoformat()
        return data


class RiskProfileService:
    """Generates and stores risk profiles."""

    def __init__(
        self,
        engine: ReferenceDataEngine,
        sanctions: Optional[SanctionsChecker] = None,
        vies: Optional[ViesChecker] = None,
        reputation: Optional[ReputationAnalyzer] = None,
        submissions: Optional[SubmissionRepository] = None,
        profiles: Optional[RiskProfileRepository] = None
    ):
        self.engine = engine
        self.sanctions = sanctions or SanctionsChecker()
        self.vies = vies or ViesChecker()
        self.reputation = reputation or ReputationAnalyzer()
        self.submissions = submissions or SubmissionRepository()
        self.profiles = profiles or RiskProfileRepository()

    async def generate(self, session: AsyncSession, registration_number: str) -> RiskProfile:
        """
        Generate the risk profile of a submitted company.

        The reference data lookup runs first so that unknown companies fail
        before any external call. The external checks then run concurrently.
        A failure to store the profile is logged and the profile is still
        returned.

        Args:
            session: Database session
            registration_number: Company registration number

        Returns:
            RiskProfile

        Raises:
            EntityNotFoundError: If there is no submission for the number
            UninitializedError: If reference data is not loaded yet
            NotFoundError: If the company is not in the registry
        """
        registration_number = registration_number.strip()

        submission = await self.submissions.get_by_registration_number(session, registration_number)
        company_name = submission.company_name or UNKNOWN_COMPANY

        aggregate = self.engine.get_aggregate(registration_number)

        sanctions, vies, reputation = await asyncio.gather(
            self.sanctions.check(company_name),
            self.vies.check(registration_number),
            self.reputation.analyze(company_name),
        )

        risk = score(aggregate, sanctions, reputation.risk_score if reputation else None)
        profile = RiskProfile.build(company_name, aggregate, sanctions, vies, reputation, risk)
        logger.info(
            f"Generated risk profile for {registration_number}: "
            f"{profile.overall_risk_level} ({profile.overall_risk_score:.1f})"
        )

        await self._save(session, submission.id, profile)
        return profile

    async def _save(self, session: AsyncSession, submission_id: str, profile: RiskProfile) -> None:
        try:
            await self.profiles.save_profile(
                session,
                submission_id=submission_id,
                registration_number=profile.registration_number,
                company_name=profile.company_name,
                risk_level=profile.overall_risk_level,
                risk_score=profile.overall_risk_score,
                checked_at=profile.checked_at,
                profile_data=profile.to_dict(),
            )
        except SQLAlchemyError as e:
            logger.exception(f"Failed to save risk profile for {profile.registration_number}: {e}")
            await session.rollback()
