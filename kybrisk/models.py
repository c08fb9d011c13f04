"""
Database models for the KYB risk service.

This module defines the SQLAlchemy models for the application.
"""

from sqlalchemy import (
    JSON, Column, DateTime, Enum, Float, Index, Integer, String, Text, func
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class KybSubmission(Base):
    """Company submitted for a KYB check."""
    __tablename__ = "kyb_submissions"

    id = Column(String, primary_key=True)
    company_name = Column(Text, nullable=True)
    company_registration_number = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        """Return string representation of the submission."""
        return f"<KybSubmission(id='{self.id}', registration_number='{self.company_registration_number}')>"


class CompanyRiskProfile(Base):
    """Risk profile computed for a submission."""
    __tablename__ = "company_risk_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(String, nullable=False)
    registration_number = Column(String, nullable=False)
    company_name = Column(Text, nullable=False)
    profile_data = Column(JSON, nullable=False)
    risk_level = Column(Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="risk_level"), nullable=False)
    risk_score = Column(Float, nullable=False)
    checked_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_profile_regnum_checked", "registration_number", "checked_at"),
    )

    def __repr__(self) -> str:
        """Return string representation of the profile."""
        return (
            f"<CompanyRiskProfile(id={self.id}, registration_number='{self.registration_number}', "
            f"risk_level='{self.risk_level}')>"
        )
