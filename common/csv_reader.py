#!/usr/bin/env python3
"""
CSV table reader

Reads the comma-delimited, double-quoted tables of an unpacked backup into
lists of row dictionaries.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class TableReadError(Exception):
    """Raised when a table file cannot be read or decoded."""


def read_table(
    csv_file: Path, required_headers: Optional[Iterable[str]] = None
) -> List[Dict[str, str]]:
    """
    Read a CSV table into a list of row dictionaries.

    Column names are kept as written; the header check is case-insensitive.
    Missing cells are returned as empty strings.

    Args:
        csv_file: Path to the CSV file
        required_headers: Column names the table must contain; if any is
                          missing an empty list is returned

    Returns:
        Rows in file order

    Raises:
        TableReadError: If the file cannot be opened, decoded or parsed

    Example:
        >>> rows = read_table(Path("contacts.csv"))
        >>> rows[0]["identity"]
        'ABCD1234'
    """
    try:
        with open(csv_file, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f, delimiter=",", quotechar='"', restval="")
            headers = [h.lower() for h in (reader.fieldnames or [])]

            if required_headers is not None:
                missing = [h for h in required_headers if h.lower() not in headers]
                if missing:
                    logger.debug(
                        f"table '{csv_file}' lacks columns {', '.join(missing)}; ignored"
                    )
                    return []

            rows = []
            for row in reader:
                # Surplus cells end up under the None key
                row.pop(None, None)
                rows.append({k: (v if v is not None else "") for k, v in row.items()})
            return rows
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise TableReadError(f"could not read file '{csv_file}'; {e}") from e
