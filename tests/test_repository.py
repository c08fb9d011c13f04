"""
Tests for repository classes.

The database session is mocked; these tests check the repository logic, not
the database.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from kybrisk.models import CompanyRiskProfile, KybSubmission
from kybrisk.repository import (
    EntityNotFoundError,
    PaginationParams,
    RiskProfileRepository,
    SubmissionRepository
)


def make_session(*results):
    """Create a mock async session whose execute calls return the given results."""
    session = MagicMock()
    session.execute = AsyncMock(side_effect=list(results))
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def scalars_result(items):
    result = MagicMock()
    result.scalars.return_value.first.return_value = items[0] if items else None
    result.scalars.return_value.all.return_value = items
    return result


def scalar_result(value):
    result = MagicMock()
    result.scalar.return_value = value
    return result


def test_pagination_params_bounds():
    """Test that pagination parameters are clamped."""
    pagination = PaginationParams(page=0, page_size=500)
    assert pagination.page == 1
    assert pagination.page_size == 100
    assert pagination.offset == 0

    pagination = PaginationParams(page=3, page_size=10)
    assert pagination.offset == 20
    assert pagination.limit == 10


@pytest.mark.asyncio
async def test_get_submission_by_registration_number():
    """Test finding the submission of a company."""
    submission = KybSubmission(id="sub-1", company_name="SIA Alfa", company_registration_number="40003000000")
    session = make_session(scalars_result([submission]))

    found = await SubmissionRepository().get_by_registration_number(session, "40003000000")

    assert found is submission
    session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_submission_missing():
    """Test that a missing submission raises EntityNotFoundError."""
    session = make_session(scalars_result([]))

    with pytest.raises(EntityNotFoundError):
        await SubmissionRepository().get_by_registration_number(session, "40003000000")


@pytest.mark.asyncio
async def test_save_profile():
    """Test that a profile is added and committed."""
    session = make_session()
    checked_at = datetime(2025, 1, 1, tzinfo=timezone.utc)

    profile = await RiskProfileRepository().save_profile(
        session,
        submission_id="sub-1",
        registration_number="40003000000",
        company_name="SIA Alfa",
        risk_level="LOW",
        risk_score=0.0,
        checked_at=checked_at,
        profile_data={"registration_number": "40003000000"}
    )

    assert isinstance(profile, CompanyRiskProfile)
    assert profile.submission_id == "sub-1"
    assert profile.risk_level == "LOW"
    assert profile.checked_at == checked_at
    assert profile.profile_data == {"registration_number": "40003000000"}
    session.add.assert_called_once_with(profile)
    session.flush.assert_awaited_once()
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_for_registration_number():
    """Test listing stored profiles with a total count."""
    stored = [
        CompanyRiskProfile(id=2, registration_number="40003000000", risk_level="HIGH"),
        CompanyRiskProfile(id=1, registration_number="40003000000", risk_level="LOW"),
    ]
    session = make_session(scalar_result(7), scalars_result(stored))

    profiles, total = await RiskProfileRepository().list_for_registration_number(
        session, "40003000000", PaginationParams(page=1, page_size=2)
    )

    assert total == 7
    assert [profile.id for profile in profiles] == [2, 1]
    assert session.execute.await_count == 2
