"""
API service for the KYB risk service.

This module implements the FastAPI service for the application.
"""

import datetime
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, validator
from sqlalchemy.ext.asyncio import AsyncSession

from kybrisk import settings
from kybrisk.db import db_manager, get_session
from kybrisk.profile import RiskProfileService
from kybrisk.refdata.engine import ReferenceDataEngine
from kybrisk.refdata.errors import NotFoundError, UninitializedError
from kybrisk.repository import EntityNotFoundError, PaginationParams, RiskProfileRepository

# Configure logging
logger = logging.getLogger("kybrisk.api")


# Initialize repositories
profile_repository = RiskProfileRepository()


# Pydantic models
class CompanyRequest(BaseModel):
    """Request body for risk profile generation."""
    registration_number: str = Field(..., alias="registrationNumber")

    @validator('registration_number', pre=True)
    def validate_registration_number(cls, v):
        """Validate that the registration number is a non-empty string."""
        if not isinstance(v, str):
            raise ValueError('Company registration number must be a string')
        if not v.strip():
            raise ValueError('Company registration number cannot be empty')
        return v.strip()


class AggregateDTO(BaseModel):
    """Reference data of one company."""
    registration_number: str
    name: str
    address: str
    registered: str
    type_text: str
    terminated: str
    is_active: bool
    sepa: str
    regtype_text: str
    type: str
    closed: str
    region: str
    city: str
    rating: Optional[str] = None
    explanation: Optional[str] = None
    rating_updated_date: Optional[str] = None
    has_insolvency: bool
    proceeding_resolution_name: Optional[str] = None
    proceeding_started_on: Optional[str] = None
    proceeding_ended_on: Optional[str] = None
    proceeding_form: Optional[str] = None
    proceeding_type: Optional[str] = None
    court_name: Optional[str] = None


class RiskProfileDTO(BaseModel):
    """Complete risk profile of a company."""
    registration_number: str
    company_name: str
    address: str
    registered_date: str
    legal_form: str
    is_active: bool
    terminated_date: Optional[str] = None
    tax_rating: Optional[str] = None
    tax_explanation: Optional[str] = None
    rating_updated_date: Optional[str] = None
    has_insolvency: bool
    insolvency_details: Optional[str] = None
    proceeding_started_on: Optional[str] = None
    proceeding_ended_on: Optional[str] = None
    court_name: Optional[str] = None
    is_sanctioned: bool
    sanction_sources: List[str]
    sanction_details: Optional[str] = None
    is_pep: bool
    vat_valid: bool
    vat_address: Optional[str] = None
    adverse_media_risk_score: Optional[float] = None
    adverse_media_summary: Optional[str] = None
    adverse_media_mentions: Optional[int] = None
    adverse_media_sources: List[str] = []
    overall_risk_score: float
    overall_risk_level: str
    checked_at: datetime.datetime


class StoredProfileDTO(BaseModel):
    """Stored risk profile."""
    id: int
    submission_id: str
    registration_number: str
    company_name: str
    risk_level: str
    risk_score: float
    checked_at: datetime.datetime
    profile_data: Dict[str, Any]

    class Config:
        """Pydantic config."""
        from_attributes = True


class ProfileListResult(BaseModel):
    """Paginated stored profiles."""
    profiles: List[StoredProfileDTO]
    total: int


class StatsDTO(BaseModel):
    """Reference data statistics."""
    registry_count: int
    tax_count: int
    insolvency_count: int
    is_initialized: bool
    skipped_rows: Dict[str, int]
    duplicate_keys: Dict[str, int]
    irregular_rows: Dict[str, int]


class HealthCheck(BaseModel):
    """Health check response model."""
    status: str = "ok"
    refdata: str


def get_refdata_engine(request: Request) -> ReferenceDataEngine:
    """Get the application's reference data engine as a FastAPI dependency."""
    return request.app.state.refdata


def get_profile_service(
    engine: ReferenceDataEngine = Depends(get_refdata_engine)
) -> RiskProfileService:
    """Get a risk profile service as a FastAPI dependency."""
    return RiskProfileService(engine)


def create_app(
    engine: Optional[ReferenceDataEngine] = None,
    manage_database: Optional[bool] = None
) -> FastAPI:
    """Create FastAPI application.

    Args:
        engine: Reference data engine. A new one reading from the configured
            source is created if omitted.
        manage_database: Create tables on startup. Defaults to settings.CREATE_TABLES_ON_STARTUP.
    """
    if engine is None:
        engine = ReferenceDataEngine()
    if manage_database is None:
        manage_database = settings.CREATE_TABLES_ON_STARTUP

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Reference data is mandatory, a load failure aborts startup
        logger.info("Initializing reference data...")
        await app.state.refdata.init()
        if manage_database:
            await db_manager.create_tables()
        yield
        await db_manager.close()

    app = FastAPI(
        title="KYB Risk API",
        version="0.1.0",
        description="""
        # KYB Risk API

        This API produces company risk profiles keyed by registration number.

        ## Features

        * Registry, taxpayer rating and insolvency lookup from in-memory reference data
        * Sanctions and PEP screening
        * EU VIES VAT validation
        * Adverse media analysis
        * Overall risk scoring (LOW, MEDIUM, HIGH, CRITICAL)
        """,
        license_info={
            "name": "Internal Use Only",
        },
        openapi_tags=[
            {
                "name": "Health",
                "description": "Health and readiness endpoints",
            },
            {
                "name": "Company",
                "description": "Company lookup and risk profile endpoints",
            },
        ],
        lifespan=lifespan
    )
    app.state.refdata = engine

    # Apply CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = datetime.datetime.now()
        response = await call_next(request)
        process_time = (datetime.datetime.now() - start_time).total_seconds() * 1000
        logger.info(
            f"Request: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Process Time: {process_time:.2f}ms - "
            f"Client: {request.client.host if request.client else 'Unknown'}"
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        # pydantic prefixes validator messages with "Value error, "
        message = message.replace("Value error, ", "")
        return JSONResponse(status_code=400, content={"detail": message})

    @app.get("/healthz", response_model=HealthCheck, tags=["Health"])
    async def healthz(engine: ReferenceDataEngine = Depends(get_refdata_engine)):
        """
        Health check endpoint.

        Returns the service status and the reference data lifecycle state.
        """
        logger.debug("Health check requested")
        return {"status": "ok", "refdata": engine.state.value}

    @app.get("/stats", response_model=StatsDTO, tags=["Health"])
    async def stats(engine: ReferenceDataEngine = Depends(get_refdata_engine)):
        """
        Reference data statistics.

        Returns index sizes, skipped rows, overwritten duplicate keys and rows with
        unbalanced quotes per dataset.
        """
        return engine.get_stats().to_dict()

    @app.get("/api/company", response_class=PlainTextResponse, tags=["Company"])
    async def company_api_status():
        """Liveness message for the company API."""
        return "Company API is running"

    @app.post("/api/company", response_model=RiskProfileDTO, tags=["Company"])
    async def generate_risk_profile(
        body: CompanyRequest,
        service: RiskProfileService = Depends(get_profile_service),
        session: AsyncSession = Depends(get_session)
    ):
        """
        Generate the risk profile of a submitted company.

        Looks up the company in the reference data, runs the external checks,
        computes the overall risk level and stores the profile.

        Example request body:
        ```json
        {
          "registrationNumber": "40003000000"
        }
        ```
        """
        try:
            profile = await service.generate(session, body.registration_number)
        except EntityNotFoundError:
            raise HTTPException(status_code=404, detail="Company submission not found in database")
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UninitializedError:
            raise HTTPException(status_code=503, detail="Reference data not ready")
        return profile.to_dict()

    @app.get(
        "/api/company/{registration_number}/aggregate",
        response_model=AggregateDTO,
        tags=["Company"]
    )
    async def get_aggregate(
        registration_number: str,
        engine: ReferenceDataEngine = Depends(get_refdata_engine)
    ):
        """
        Get the reference data of a company.

        Registry data is always present; tax rating and insolvency fields are
        null when the company has no entry in those datasets.
        """
        try:
            return engine.get_aggregate(registration_number).to_dict()
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UninitializedError:
            raise HTTPException(status_code=503, detail="Reference data not ready")

    @app.get(
        "/api/company/{registration_number}/profiles",
        response_model=ProfileListResult,
        tags=["Company"]
    )
    async def list_profiles(
        registration_number: str,
        page: int = Query(1, ge=1, description="Page number (1-based)"),
        page_size: int = Query(10, ge=1, le=100, description="Page size (max 100)"),
        session: AsyncSession = Depends(get_session)
    ):
        """
        List stored risk profiles of a company, newest first.
        """
        pagination = PaginationParams(page=page, page_size=page_size)
        profiles, total = await profile_repository.list_for_registration_number(
            session=session,
            registration_number=registration_number.strip(),
            pagination=pagination
        )
        return {
            "profiles": profiles,
            "total": total
        }

    return app


def main() -> None:
    """Run the API server."""
    uvicorn.run(create_app(), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
