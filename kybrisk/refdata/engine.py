"""
Aggregate lookup engine over the reference data indexes.

The engine builds the registry, tax rating and insolvency indexes once,
concurrently, and joins them per registration number. The registry is
authoritative: a company missing there is not found, whatever the other
datasets hold. Tax rating and insolvency are optional enrichments.

Example:
    ```python
    engine = ReferenceDataEngine(LocalDirectorySource(Path("data/csv")))
    await engine.init()
    aggregate = engine.get_aggregate("40003000000")
    ```
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from kybrisk.refdata.datasets import INSOLVENCY, REGISTRY, TAX_RATING, DatasetSpec
from kybrisk.refdata.errors import MalformedSourceError, NotFoundError
from kybrisk.refdata.index import KeyedIndex
from kybrisk.refdata.lifecycle import LifecycleGate, LifecycleState
from kybrisk.refdata.parser import ParseReport, parse_delimited
from kybrisk.refdata.records import AggregateRecord, InsolvencyRecord, RegistryRecord, TaxRatingRecord
from kybrisk.refdata.sources import DataSource, get_data_source

logger = logging.getLogger("kybrisk.refdata.engine")


@dataclass
class ReferenceDataStats:
    """Sizes and load counters of the reference data indexes."""
    registry_count: int
    tax_count: int
    insolvency_count: int
    is_initialized: bool
    skipped_rows: Dict[str, int] = field(default_factory=dict)
    duplicate_keys: Dict[str, int] = field(default_factory=dict)
    irregular_rows: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReferenceDataEngine:
    """Owns the three reference indexes and answers aggregate lookups.

    Instances are independent: each has its own indexes and lifecycle.
    """

    def __init__(
        self,
        source: Optional[DataSource] = None,
        registry: DatasetSpec = REGISTRY,
        tax: DatasetSpec = TAX_RATING,
        insolvency: DatasetSpec = INSOLVENCY
    ):
        """
        Initialize the engine. Nothing is loaded until :meth:`init`.

        Args:
            source: Where the reference files are read from. Defaults to the
                source configured in settings.
            registry: Registry dataset definition
            tax: Tax rating dataset definition
            insolvency: Insolvency dataset definition
        """
        self.source = source or get_data_source()
        self.specs: List[DatasetSpec] = [registry, tax, insolvency]
        self._registry: KeyedIndex[RegistryRecord] = KeyedIndex(registry.name)
        self._tax: KeyedIndex[TaxRatingRecord] = KeyedIndex(tax.name)
        self._insolvency: KeyedIndex[InsolvencyRecord] = KeyedIndex(insolvency.name)
        self._gate = LifecycleGate("Reference data")

    @property
    def state(self) -> LifecycleState:
        return self._gate.state

    async def init(self) -> None:
        """
        Load all reference datasets.

        Safe to call more than once; only the first call loads. Must complete
        before any lookup.

        Raises:
            SourceUnreadableError: If a source cannot be read
            MalformedSourceError: If a source cannot be parsed
        """
        await self._gate.open(self._load_all)

    async def _load_all(self) -> None:
        start_time = time.time()
        tasks = [asyncio.ensure_future(self._build(spec)) for spec in self.specs]
        try:
            registry, tax, insolvency = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        # Publish only once every build succeeded
        self._registry, self._tax, self._insolvency = registry, tax, insolvency

        logger.info(
            f"Reference data initialized in {time.time() - start_time:.2f}s: "
            f"{len(registry)} registry, {len(tax)} tax, {len(insolvency)} insolvency entries"
        )

    async def _build(self, spec: DatasetSpec) -> KeyedIndex[Any]:
        content = await self.source.read(spec.filename)
        report = ParseReport()
        rows = parse_delimited(
            content,
            delimiter=spec.delimiter,
            quotechar=spec.quotechar,
            relax_quotes=spec.relax_quotes,
            report=report
        )
        try:
            index = KeyedIndex.build(rows, spec.key_field, spec.mapper, name=spec.name)
        except MalformedSourceError as e:
            raise MalformedSourceError(f"Failed to parse {spec.filename}: {str(e)}") from e
        index.irregular_count = report.irregular_rows
        if index.irregular_count:
            logger.warning(f"{spec.name}: {index.irregular_count} rows with unbalanced quotes")

        logger.info(f"✓ {spec.name} data loaded: {len(index)} entries")
        return index

    def get_aggregate(self, registration_number: str) -> AggregateRecord:
        """
        Get the aggregate record of a company.

        Args:
            registration_number: Registration number; surrounding whitespace is ignored

        Returns:
            Registry data joined with tax rating and insolvency data, if any

        Raises:
            UninitializedError: If called before init() succeeded
            NotFoundError: If the registration number is not in the registry
        """
        self._gate.ensure_ready()

        key = registration_number.strip()
        logger.debug(f"Looking up aggregate data for {key}")

        registry = self._registry.lookup(key)
        if registry is None:
            raise NotFoundError(key)

        return AggregateRecord.merge(
            key,
            registry,
            self._tax.lookup(key),
            self._insolvency.lookup(key)
        )

    def is_ready(self) -> bool:
        return self._gate.is_ready

    def get_stats(self) -> ReferenceDataStats:
        indexes = [self._registry, self._tax, self._insolvency]
        return ReferenceDataStats(
            registry_count=self._registry.size(),
            tax_count=self._tax.size(),
            insolvency_count=self._insolvency.size(),
            is_initialized=self.is_ready(),
            skipped_rows={index.name: index.skipped_count for index in indexes},
            duplicate_keys={index.name: index.duplicate_count for index in indexes},
            irregular_rows={index.name: index.irregular_count for index in indexes},
        )
