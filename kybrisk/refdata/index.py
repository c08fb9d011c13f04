"""
Keyed dataset index.

Maps a primary key taken from each parsed row to a typed record.
"""

import logging
from typing import Callable, Dict, Generic, Iterable, Optional, TypeVar

from kybrisk.refdata.parser import Row

logger = logging.getLogger("kybrisk.refdata.index")

R = TypeVar("R")


class KeyedIndex(Generic[R]):
    """In-memory index from key to typed record.

    Read-only once built. Use :meth:`build` to create one from parsed rows.
    """

    def __init__(self, name: str = "index"):
        self.name = name
        self._records: Dict[str, R] = {}
        self.rows_read = 0
        self.skipped_count = 0
        self.duplicate_count = 0
        # Rows whose quoting could not be honoured, set by the loader
        self.irregular_count = 0

    @classmethod
    def build(
        cls,
        rows: Iterable[Row],
        key_field: str,
        mapper: Callable[[Row], R],
        name: str = "index"
    ) -> "KeyedIndex[R]":
        """Build an index from parsed rows.

        Rows whose key is absent or blank after trimming are skipped. When a
        key repeats, the last row wins.

        Args:
            rows: Parsed rows
            key_field: Name of the field holding the key
            mapper: Function turning a row into a typed record
            name: Index name used in logs

        Returns:
            Populated index
        """
        index: KeyedIndex[R] = cls(name)
        for row in rows:
            index.rows_read += 1
            key = (row.get(key_field) or "").strip()
            if not key:
                index.skipped_count += 1
                logger.debug(f"{name}: skipping row {index.rows_read} without '{key_field}'")
                continue
            index._insert(key, mapper(row))

        if index.skipped_count:
            logger.info(f"{name}: skipped {index.skipped_count} rows without '{key_field}'")
        if index.duplicate_count:
            logger.info(f"{name}: {index.duplicate_count} duplicate keys overwritten")
        return index

    def _insert(self, key: str, record: R) -> None:
        if key in self._records:
            self.duplicate_count += 1
        self._records[key] = record

    def lookup(self, key: str) -> Optional[R]:
        """Return the record stored under ``key``, or None."""
        return self._records.get(key)

    def size(self) -> int:
        """Return the number of keys held."""
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __repr__(self) -> str:
        return f"<KeyedIndex(name='{self.name}', size={len(self._records)})>"
