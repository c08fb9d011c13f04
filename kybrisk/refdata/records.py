"""
Typed records held by the reference data indexes.

All records are immutable once loaded.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RegistryRecord:
    """One company from the enterprise register."""
    name: str
    address: str
    registered: str
    type_text: str
    terminated: str
    is_active: bool
    # Carried as-is for enrichment, not interpreted
    sepa: str = ""
    regtype_text: str = ""
    type: str = ""
    closed: str = ""
    region: str = ""
    city: str = ""


@dataclass(frozen=True)
class TaxRatingRecord:
    """Taxpayer rating of one company."""
    rating: str
    explanation: str
    rating_updated_date: str = ""


@dataclass(frozen=True)
class InsolvencyRecord:
    """Insolvency proceeding of one company. Its presence is the signal."""
    proceeding_resolution_name: str
    proceeding_started_on: str = ""
    proceeding_ended_on: str = ""
    proceeding_form: str = ""
    proceeding_type: str = ""
    court_name: str = ""


@dataclass(frozen=True)
class AggregateRecord:
    """Join of the registry, tax rating and insolvency records of one company.

    Registry fields are always present. Tax and insolvency fields are None
    when the company has no entry in the respective index.
    """
    registration_number: str
    # Registry
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
    # Tax rating
    rating: Optional[str]
    explanation: Optional[str]
    rating_updated_date: Optional[str]
    # Insolvency
    has_insolvency: bool
    proceeding_resolution_name: Optional[str]
    proceeding_started_on: Optional[str]
    proceeding_ended_on: Optional[str]
    proceeding_form: Optional[str]
    proceeding_type: Optional[str]
    court_name: Optional[str]

    @classmethod
    def merge(
        cls,
        registration_number: str,
        registry: RegistryRecord,
        tax: Optional[TaxRatingRecord],
        insolvency: Optional[InsolvencyRecord]
    ) -> "AggregateRecord":
        """Build an aggregate by field union of the three partial records."""
        return cls(
            registration_number=registration_number,
            name=registry.name,
            address=registry.address,
            registered=registry.registered,
            type_text=registry.type_text,
            terminated=registry.terminated,
            is_active=registry.is_active,
            sepa=registry.sepa,
            regtype_text=registry.regtype_text,
            type=registry.type,
            closed=registry.closed,
            region=registry.region,
            city=registry.city,
            rating=tax.rating if tax is not None else None,
            explanation=tax.explanation if tax is not None else None,
            rating_updated_date=tax.rating_updated_date if tax is not None else None,
            has_insolvency=insolvency is not None,
            proceeding_resolution_name=insolvency.proceeding_resolution_name if insolvency is not None else None,
            proceeding_started_on=insolvency.proceeding_started_on if insolvency is not None else None,
            proceeding_ended_on=insolvency.proceeding_ended_on if insolvency is not None else None,
            proceeding_form=insolvency.proceeding_form if insolvency is not None else None,
            proceeding_type=insolvency.proceeding_type if insolvency is not None else None,
            court_name=insolvency.court_name if insolvency is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
