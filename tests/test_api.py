"""
Tests for API endpoints.

The reference data engine runs over the in-memory sample snapshot; the
database session, repositories and external checks are mocked.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from kybrisk.api import create_app, get_profile_service
from kybrisk.checks.sanctions import SanctionsResult
from kybrisk.checks.vies import ViesResult
from kybrisk.db import get_session
from kybrisk.models import CompanyRiskProfile
from kybrisk.profile import RiskProfileService
from kybrisk.refdata.engine import ReferenceDataEngine
from kybrisk.refdata.errors import SourceUnreadableError
from kybrisk.repository import EntityNotFoundError


async def override_get_session():
    yield MagicMock()


@pytest.fixture
def profile_service(refdata_engine) -> RiskProfileService:
    """Profile service over the test engine with mocked collaborators."""
    sanctions = MagicMock()
    sanctions.check = AsyncMock(return_value=SanctionsResult())
    vies = MagicMock()
    vies.check = AsyncMock(return_value=ViesResult(is_valid=True, address="Rīga"))
    reputation = MagicMock()
    reputation.analyze = AsyncMock(return_value=None)
    submissions = MagicMock()

    async def get_submission(session, registration_number):
        if registration_number == "40003000001":
            raise EntityNotFoundError(f"No submission for registration number {registration_number}")
        return SimpleNamespace(id="sub-1", company_name="SIA Clean Trading")

    submissions.get_by_registration_number = AsyncMock(side_effect=get_submission)
    profiles = MagicMock()
    profiles.save_profile = AsyncMock()

    return RiskProfileService(
        refdata_engine,
        sanctions=sanctions,
        vies=vies,
        reputation=reputation,
        submissions=submissions,
        profiles=profiles
    )


@pytest.fixture
def test_app(refdata_engine, profile_service):
    """FastAPI app over the test engine."""
    app = create_app(engine=refdata_engine, manage_database=False)
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_profile_service] = lambda: profile_service
    return app


@pytest.fixture
def test_client(test_app):
    """Test client with the app lifespan run, so reference data is loaded."""
    with TestClient(test_app) as client:
        yield client


def test_api_health(test_client):
    """Test API health endpoint."""
    response = test_client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "refdata": "ready"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_api_stats(test_client):
    """Test reference data statistics endpoint."""
    response = test_client.get("/stats")
    assert response.status_code == 200

    data = response.json()
    assert data["registry_count"] == 5
    assert data["tax_count"] == 3
    assert data["insolvency_count"] == 2
    assert data["is_initialized"] is True
    assert data["skipped_rows"]["registry"] == 1
    assert data["irregular_rows"]["tax"] == 0


def test_api_company_status(test_client):
    """Test the company API liveness message."""
    response = test_client.get("/api/company")
    assert response.status_code == 200
    assert response.text == "Company API is running"


def test_api_generate_profile(test_client):
    """Test risk profile generation."""
    response = test_client.post("/api/company", json={"registrationNumber": "40003000000"})
    assert response.status_code == 200

    data = response.json()
    assert data["registration_number"] == "40003000000"
    assert data["company_name"] == "SIA Clean Trading"
    assert data["tax_rating"] == "A"
    assert data["is_sanctioned"] is False
    assert data["vat_valid"] is True
    assert data["overall_risk_score"] == 0
    assert data["overall_risk_level"] == "LOW"
    assert "checked_at" in data


@pytest.mark.parametrize("body,message", [
    ({}, None),
    ({"registrationNumber": ""}, "cannot be empty"),
    ({"registrationNumber": "   "}, "cannot be empty"),
    ({"registrationNumber": 40003000000}, "must be a string"),
    ({"registrationNumber": None}, "must be a string"),
])
def test_api_generate_profile_invalid_input(test_client, body, message):
    """Test that invalid registration numbers are rejected with 400."""
    response = test_client.post("/api/company", json=body)
    assert response.status_code == 400
    if message:
        assert message in response.json()["detail"]


def test_api_generate_profile_not_in_registry(test_client):
    """Test that a company missing from the registry is 404."""
    response = test_client.post("/api/company", json={"registrationNumber": "99999999999"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Registration number 99999999999 not found in registry"


def test_api_generate_profile_without_submission(test_client):
    """Test that a company without a submission is 404 with its own message."""
    response = test_client.post("/api/company", json={"registrationNumber": "40003000001"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Company submission not found in database"


def test_api_aggregate(test_client):
    """Test the aggregate endpoint."""
    response = test_client.get("/api/company/40003000002/aggregate")
    assert response.status_code == 200

    data = response.json()
    assert data["name"] == "SIA Broke Builders"
    assert data["has_insolvency"] is True
    assert data["rating"] is None

    response = test_client.get("/api/company/99999999999/aggregate")
    assert response.status_code == 404


def test_api_not_ready(test_app):
    """Test that lookups are 503 while reference data is not loaded."""
    # Without the context manager the lifespan does not run
    client = TestClient(test_app)

    assert client.get("/healthz").json()["refdata"] == "uninitialized"
    assert client.get("/api/company/40003000000/aggregate").status_code == 503

    response = client.post("/api/company", json={"registrationNumber": "40003000000"})
    assert response.status_code == 503
    assert response.json()["detail"] == "Reference data not ready"


def test_api_list_profiles(test_client):
    """Test listing stored profiles."""
    stored = CompanyRiskProfile(
        id=1,
        submission_id="sub-1",
        registration_number="40003000000",
        company_name="SIA Clean Trading",
        profile_data={"overall_risk_level": "LOW"},
        risk_level="LOW",
        risk_score=0.0,
        checked_at=datetime(2025, 1, 1, tzinfo=timezone.utc)
    )

    with patch(
        "kybrisk.api.profile_repository.list_for_registration_number",
        new=AsyncMock(return_value=([stored], 1))
    ) as mock_list:
        response = test_client.get("/api/company/40003000000/profiles?page=1&page_size=5")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["profiles"][0]["risk_level"] == "LOW"
    assert data["profiles"][0]["profile_data"] == {"overall_risk_level": "LOW"}

    pagination = mock_list.call_args.kwargs["pagination"]
    assert pagination.page == 1
    assert pagination.page_size == 5


def test_api_startup_fails_on_bad_reference_data(refdata_files, source_factory):
    """Test that a reference data load failure aborts startup."""
    engine = ReferenceDataEngine(source_factory(refdata_files, fail="registry.csv"))
    app = create_app(engine=engine, manage_database=False)

    with pytest.raises(SourceUnreadableError):
        with TestClient(app):
            pass
