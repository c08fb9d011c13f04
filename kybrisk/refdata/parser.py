"""
Delimited-record parser.

Turns header-first delimited text into a lazy sequence of rows, each row a
mapping from header field name to trimmed value.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from kybrisk.refdata.errors import MalformedSourceError, SourceUnreadableError

logger = logging.getLogger("kybrisk.refdata.parser")

Row = Dict[str, str]
TextSource = Union[str, Iterable[str]]

BOM = "\ufeff"


def _is_blank(values: List[str]) -> bool:
    return all(not value.strip() for value in values)


@dataclass
class ParseReport:
    """Counters filled in while parsing."""
    irregular_rows: int = 0


Record = Tuple[int, List[str]]


def _strict_records(lines: Iterable[str], delimiter: str, quotechar: str) -> Iterator[Record]:
    reader = csv.reader(
        lines,
        delimiter=delimiter,
        quotechar=quotechar,
        skipinitialspace=True,
        strict=True,
    )
    for values in reader:
        yield reader.line_num, values


def _relaxed_records(
    lines: Iterable[str],
    delimiter: str,
    quotechar: str,
    report: ParseReport
) -> Iterator[Record]:
    # A quoted field never extends past its physical line
    for line_num, line in enumerate(lines, start=1):
        line = line.rstrip("\r\n")
        if line.count(quotechar) % 2:
            report.irregular_rows += 1
            logger.warning(f"Line {line_num}: unbalanced quotes, splitting the line without quoting")
            yield line_num, [value.replace(quotechar, "") for value in line.split(delimiter)]
            continue

        reader = csv.reader(
            [line],
            delimiter=delimiter,
            quotechar=quotechar,
            skipinitialspace=True,
            strict=False,
        )
        for values in reader:
            yield line_num, values


def parse_delimited(
    source: TextSource,
    delimiter: str,
    quotechar: str = '"',
    relax_quotes: bool = False,
    report: Optional[ParseReport] = None
) -> Iterator[Row]:
    """Parse delimited text into rows keyed by header field name.

    The first non-blank line is the header. Blank lines are skipped and all
    names and values are stripped of surrounding whitespace. A row shorter
    than the header leaves the missing fields out of the mapping; values
    beyond the header width are dropped.

    With ``relax_quotes`` set, irregular quoting is tolerated and the
    best-effort field value is emitted. Each physical line is one row: a line
    with an unbalanced quote is split on the delimiter with its quote
    characters removed and counted in ``report.irregular_rows``, so it never
    consumes the rows after it. Quoted fields spanning lines are therefore
    only supported in strict mode, where irregular quoting raises
    MalformedSourceError.

    Args:
        source: Text, an iterable of lines, or a text stream
        delimiter: Field delimiter character
        quotechar: Quote character
        relax_quotes: Tolerate malformed quoting
        report: Optional counters updated while parsing

    Yields:
        One mapping per data row

    Raises:
        MalformedSourceError: If the header is missing or quoting is malformed
        SourceUnreadableError: If the underlying stream fails while reading
    """
    if isinstance(source, str):
        source = io.StringIO(source, newline="")
    if report is None:
        report = ParseReport()

    if relax_quotes:
        records = _relaxed_records(source, delimiter, quotechar, report)
    else:
        records = _strict_records(source, delimiter, quotechar)

    header: List[str] = []
    line_num = 0
    try:
        for line_num, values in records:
            if not values or _is_blank(values):
                continue

            if not header:
                values[0] = values[0].lstrip(BOM)
                header = [name.strip() for name in values]
                continue

            if len(values) > len(header):
                logger.debug(
                    f"Line {line_num}: {len(values)} fields for {len(header)} columns, "
                    f"dropping the extra values"
                )

            yield {name: value.strip() for name, value in zip(header, values)}
    except csv.Error as e:
        raise MalformedSourceError(f"Malformed delimited data after line {line_num}: {str(e)}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise SourceUnreadableError(f"Failed to read delimited data: {str(e)}") from e

    if not header:
        raise MalformedSourceError("Delimited data has no header row")
