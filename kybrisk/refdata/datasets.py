"""
Definitions of the reference datasets.

Each dataset names its source file, delimited format, key column and the
mapper that turns a parsed row into a typed record. Column names are part of
the source contract; renaming them breaks the join.
"""

from dataclasses import dataclass
from typing import Any, Callable

from kybrisk.refdata.parser import Row
from kybrisk.refdata.records import InsolvencyRecord, RegistryRecord, TaxRatingRecord


@dataclass(frozen=True)
class DatasetSpec:
    """Format and mapping of one reference dataset."""
    name: str
    filename: str
    delimiter: str
    key_field: str
    mapper: Callable[[Row], Any]
    quotechar: str = '"'
    relax_quotes: bool = False


def map_registry_row(row: Row) -> RegistryRecord:
    terminated = row.get("terminated", "")
    return RegistryRecord(
        name=row.get("name", ""),
        address=row.get("address", ""),
        registered=row.get("registered", ""),
        type_text=row.get("type_text", ""),
        terminated=terminated,
        is_active=not terminated.strip(),
        sepa=row.get("sepa", ""),
        regtype_text=row.get("regtype_text", ""),
        type=row.get("type", ""),
        closed=row.get("closed", ""),
        region=row.get("region", ""),
        city=row.get("city", ""),
    )


def map_tax_rating_row(row: Row) -> TaxRatingRecord:
    return TaxRatingRecord(
        rating=row.get("Reitings", ""),
        explanation=row.get("Skaidrojums", ""),
        rating_updated_date=row.get("Informacijas_atjaunosanas_datums", ""),
    )


def map_insolvency_row(row: Row) -> InsolvencyRecord:
    return InsolvencyRecord(
        proceeding_resolution_name=row.get("proceeding_resolution_name", ""),
        proceeding_started_on=row.get("proceeding_started_on", ""),
        proceeding_ended_on=row.get("proceeding_ended_on", ""),
        proceeding_form=row.get("proceeding_form", ""),
        proceeding_type=row.get("proceeding_type", ""),
        court_name=row.get("court_name", ""),
    )


REGISTRY = DatasetSpec(
    name="registry",
    filename="registry.csv",
    delimiter=";",
    key_field="regcode",
    mapper=map_registry_row,
)

# Free-text explanations contain stray quotes, hence the relaxed policy
TAX_RATING = DatasetSpec(
    name="tax",
    filename="taxpayer_rating.csv",
    delimiter=",",
    key_field="Registracijas_kods",
    mapper=map_tax_rating_row,
    relax_quotes=True,
)

INSOLVENCY = DatasetSpec(
    name="insolvency",
    filename="insolvency.csv",
    delimiter=";",
    key_field="debtor_registration_number",
    mapper=map_insolvency_row,
)
