#!/usr/bin/env python3
"""
Reference data check.

Loads the configured reference data snapshot the same way the API does at
startup and prints the index statistics. Optionally looks up registration
numbers given on the command line. Exits non-zero if loading fails.

Usage:
    python scripts/check_refdata.py [--dir data/csv] [REGISTRATION_NUMBER ...]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from kybrisk.refdata.engine import ReferenceDataEngine
from kybrisk.refdata.errors import NotFoundError, RefDataError
from kybrisk.refdata.sources import LocalDirectorySource, get_data_source

logger = logging.getLogger("kybrisk.scripts.check_refdata")


async def check_refdata(directory, registration_numbers) -> int:
    """Load reference data and print statistics and lookups.

    Returns:
        Process exit code
    """
    source = LocalDirectorySource(Path(directory)) if directory else get_data_source()
    engine = ReferenceDataEngine(source)

    try:
        await engine.init()
    except RefDataError as e:
        logger.error(f"Reference data failed to load: {str(e)}")
        return 1

    print(json.dumps(engine.get_stats().to_dict(), indent=2))

    for registration_number in registration_numbers:
        try:
            aggregate = engine.get_aggregate(registration_number)
        except NotFoundError as e:
            logger.warning(str(e))
            continue
        print(json.dumps(aggregate.to_dict(), indent=2, ensure_ascii=False))

    return 0


def main():
    parser = argparse.ArgumentParser(description="Load and check the reference data snapshot")
    parser.add_argument("--dir", help="Read CSV files from this directory instead of the configured source")
    parser.add_argument("registration_numbers", nargs="*", help="Registration numbers to look up")
    args = parser.parse_args()

    sys.exit(asyncio.run(check_refdata(args.dir, args.registration_numbers)))


if __name__ == "__main__":
    main()
