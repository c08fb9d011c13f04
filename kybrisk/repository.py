"""
Repository classes for KYB submissions and risk profiles.

This module provides repository classes for interacting with the database.
"""

import logging
from abc import ABC
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kybrisk.models import Base, CompanyRiskProfile, KybSubmission

# Configure logging
logger = logging.getLogger("kybrisk.repository")

# Type variables
T = TypeVar('T', bound=Base)


class RepositoryError(Exception):
    """Base exception for repository-related errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Exception raised when an entity is not found."""
    pass


class PaginationParams:
    """Parameters for pagination."""

    def __init__(self, page: int = 1, page_size: int = 10):
        """
        Initialize pagination parameters.

        Args:
            page: Page number (1-based)
            page_size: Number of items per page
        """
        self.page = max(1, page)  # Ensure page is at least 1
        self.page_size = min(max(1, page_size), 100)  # Ensure page_size is between 1 and 100

    @property
    def offset(self) -> int:
        """
        Get the offset for pagination.

        Returns:
            Offset value
        """
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """
        Get the limit for pagination.

        Returns:
            Limit value
        """
        return self.page_size


class BaseRepository(Generic[T], ABC):
    """
    Base repository class for database operations.

    This class provides common operations for database entities.
    """

    def __init__(self, model: Type[T]):
        """
        Initialize the repository.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model

    async def create(self, session: AsyncSession, data: Dict[str, Any]) -> T:
        """
        Create a new entity.

        Args:
            session: Database session
            data: Entity data

        Returns:
            Created entity
        """
        entity = self.model(**data)
        session.add(entity)
        await session.flush()
        await session.refresh(entity)
        return entity


class SubmissionRepository(BaseRepository[KybSubmission]):
    """Repository for KYB submissions."""

    def __init__(self):
        """Initialize the submission repository."""
        super().__init__(KybSubmission)

    async def get_by_registration_number(
        self,
        session: AsyncSession,
        registration_number: str
    ) -> KybSubmission:
        """
        Get the latest submission for a registration number.

        Args:
            session: Database session
            registration_number: Company registration number

        Returns:
            Submission

        Raises:
            EntityNotFoundError: If no submission exists for the number
        """
        stmt = (
            select(KybSubmission)
            .where(KybSubmission.company_registration_number == registration_number)
            .order_by(desc(KybSubmission.created_at))
            .limit(1)
        )
        result = await session.execute(stmt)
        submission = result.scalars().first()

        if submission is None:
            raise EntityNotFoundError(f"No submission for registration number {registration_number}")

        return submission


class RiskProfileRepository(BaseRepository[CompanyRiskProfile]):
    """Repository for computed risk profiles."""

    def __init__(self):
        """Initialize the risk profile repository."""
        super().__init__(CompanyRiskProfile)

    async def save_profile(
        self,
        session: AsyncSession,
        submission_id: str,
        registration_number: str,
        company_name: str,
        risk_level: str,
        risk_score: float,
        checked_at: datetime,
        profile_data: Dict[str, Any]
    ) -> CompanyRiskProfile:
        """
        Store a risk profile, keeping the whole profile as JSON.

        Args:
            session: Database session
            submission_id: ID of the submission the profile was computed for
            registration_number: Company registration number
            company_name: Company name
            risk_level: Overall risk level
            risk_score: Overall numeric risk score
            checked_at: When the profile was computed
            profile_data: JSON-serializable profile

        Returns:
            Stored profile
        """
        entity = await self.create(session, {
            "submission_id": submission_id,
            "registration_number": registration_number,
            "company_name": company_name,
            "profile_data": profile_data,
            "risk_level": risk_level,
            "risk_score": risk_score,
            "checked_at": checked_at,
        })
        await session.commit()
        logger.info(f"Saved risk profile {entity.id} for {entity.registration_number}")
        return entity

    async def list_for_registration_number(
        self,
        session: AsyncSession,
        registration_number: str,
        pagination: Optional[PaginationParams] = None
    ) -> Tuple[List[CompanyRiskProfile], int]:
        """
        List stored profiles of a company, newest first.

        Args:
            session: Database session
            registration_number: Company registration number
            pagination: Pagination parameters

        Returns:
            Tuple of (profiles, total_count)
        """
        condition = CompanyRiskProfile.registration_number == registration_number

        count_stmt = select(func.count()).select_from(CompanyRiskProfile).where(condition)
        result = await session.execute(count_stmt)
        total_count = result.scalar() or 0

        stmt = select(CompanyRiskProfile).where(condition).order_by(desc(CompanyRiskProfile.checked_at))
        if pagination:
            stmt = stmt.offset(pagination.offset).limit(pagination.limit)

        result = await session.execute(stmt)
        return list(result.scalars().all()), total_count
