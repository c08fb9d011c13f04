"""
Test fixtures for the KYB risk service.

This module provides pytest fixtures: an in-memory reference data source with
a small sample snapshot, and a reference data engine loaded from it.
"""

import asyncio
from typing import Dict, Optional

import pytest
import pytest_asyncio

from kybrisk.refdata.engine import ReferenceDataEngine
from kybrisk.refdata.errors import SourceUnreadableError
from kybrisk.refdata.sources import DataSource


REGISTRY_CSV = "\ufeff" + """regcode;sepa;name;regtype_text;type_text;registered;terminated;closed;address;region;city
40003000000;LV;SIA Clean Trading;Komercreģistrs;Sabiedrība ar ierobežotu atbildību;2001-01-15;;;Rīga, Brīvības iela 1;Rīga;Rīga
40003000001;LV;SIA Closed Shop;Komercreģistrs;Sabiedrība ar ierobežotu atbildību;2005-03-01;2020-06-30;L;Jelgava, Lielā iela 2;Jelgava;Jelgava
40003000002;LV;SIA Broke Builders;Komercreģistrs;Sabiedrība ar ierobežotu atbildību;2010-09-09;;;Liepāja, Ostas iela 3;Liepāja;Liepāja
40003000003;LV;SIA Tax Trouble;Komercreģistrs;Sabiedrība ar ierobežotu atbildību;2012-02-29;;;Daugavpils, Rīgas iela 4;Daugavpils;Daugavpils
40003000004;LV;SIA Worst Case;Komercreģistrs;Sabiedrība ar ierobežotu atbildību;2003-07-07;2019-12-31;L;Ventspils, Ostas iela 5;Ventspils;Ventspils
;LV;Row Without Code;Komercreģistrs;Biedrība;2015-05-05;;;Cēsis;Cēsis;Cēsis
"""

TAX_CSV = """Registracijas_kods,Nosaukums,Reitings,Skaidrojums,Informacijas_atjaunosanas_datums
40003000000,SIA Clean Trading,A,"Company is a reliable taxpayer",2024-01-01
40003000003,SIA Tax Trouble,Poor compliance history,"Tax debts" over 1000 EUR,2024-01-01
99999999999,Not In Registry,A,Orphan rating,2024-01-01
"""

INSOLVENCY_CSV = """debtor_registration_number;debtor_name;proceeding_form;proceeding_type;proceeding_started_on;proceeding_ended_on;proceeding_resolution_name;court_name
40003000002;SIA Broke Builders;Juridiskās personas maksātnespējas process;Maksātnespēja;2023-04-01;;Pasludināts maksātnespējas process;Rīgas pilsētas tiesa
40003000004;SIA Worst Case;Juridiskās personas maksātnespējas process;Maksātnespēja;2019-01-10;2019-12-01;Process izbeigts;Kurzemes rajona tiesa
"""


class InMemorySource(DataSource):
    """Data source serving reference files from a dict."""

    def __init__(self, files: Dict[str, str], delay: float = 0, fail: Optional[str] = None):
        self.files = files
        self.delay = delay
        self.fail = fail
        self.reads: Dict[str, int] = {}

    async def read(self, filename: str) -> str:
        self.reads[filename] = self.reads.get(filename, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if filename == self.fail or filename not in self.files:
            raise SourceUnreadableError(f"Failed to read {filename}")
        return self.files[filename]


@pytest.fixture
def refdata_files() -> Dict[str, str]:
    """Sample reference data snapshot, keyed by file name."""
    return {
        "registry.csv": REGISTRY_CSV,
        "taxpayer_rating.csv": TAX_CSV,
        "insolvency.csv": INSOLVENCY_CSV,
    }


@pytest.fixture
def memory_source(refdata_files) -> InMemorySource:
    """In-memory source over the sample snapshot."""
    return InMemorySource(refdata_files)


@pytest.fixture
def refdata_engine(memory_source) -> ReferenceDataEngine:
    """Engine over the sample snapshot, not initialized."""
    return ReferenceDataEngine(memory_source)


@pytest_asyncio.fixture
async def ready_engine(refdata_engine) -> ReferenceDataEngine:
    """Engine over the sample snapshot, initialized."""
    await refdata_engine.init()
    return refdata_engine


@pytest.fixture
def source_factory():
    """Factory for in-memory sources with custom files, delay or failure."""
    return InMemorySource
