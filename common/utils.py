#!/usr/bin/env python3
"""
Common utility functions for the reconciliation engine
"""

import logging
import os
import re
import sys
import unicodedata
from datetime import datetime
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)


# ============================================================================
# Filename Sanitizing
# ============================================================================

# Unicode categories that never belong in a filename: control, format,
# private use, surrogates and unassigned code points
NON_PRINTABLE_CATEGORIES = {"Cc", "Cf", "Co", "Cs", "Cn"}

WINDOWS_FORBIDDEN = re.compile(r'[:<>"/\\|?*]')


def is_windows() -> bool:
    return sys.platform.startswith("win")


def sanitize_platform_name(name: str, windows: Optional[bool] = None) -> str:
    """Make a string safe for use as a file or folder name on this platform.

    Non-printable characters become dots; on Windows the reserved characters
    ``: < > " / \\ | ? *`` become dots as well, elsewhere only ``/`` does.
    Runs of dots are collapsed to a single dot.

    Args:
        name: Candidate filename (without directory)
        windows: Force Windows rules on or off (defaults to the running platform)

    Returns:
        Sanitized name

    Example:
        >>> sanitize_platform_name("a/b\\x00c", windows=False)
        'a.b.c'
        >>> sanitize_platform_name("12:30", windows=True)
        '12.30'
    """
    if windows is None:
        windows = is_windows()

    chars = [
        "." if unicodedata.category(c) in NON_PRINTABLE_CATEGORIES else c for c in name
    ]
    sanitized = "".join(chars)

    if windows:
        sanitized = WINDOWS_FORBIDDEN.sub(".", sanitized)
    else:
        sanitized = sanitized.replace("/", ".")

    return re.sub(r"\.{2,}", ".", sanitized)


def unique_token_join(tokens: Iterable[str]) -> str:
    """Join tokens with spaces, dropping case-insensitive repeats.

    The first spelling of a token wins; whitespace in the result is
    normalized to single spaces.

    Example:
        >>> unique_token_join(["Muster", "Max", "", "max", "ABCD1234"])
        'Muster Max ABCD1234'
    """
    seen = set()
    kept = []
    for token in tokens:
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        kept.append(token)
    return re.sub(r"\s+", " ", " ".join(kept)).strip()


# ============================================================================
# Text Cleaning
# ============================================================================


def clean_text(value, delimiter: str = " ↲ ") -> str:
    """Flatten message text onto a single transcript line.

    Line breaks and form feeds become ``delimiter``; every other run of
    whitespace collapses to one space.

    Example:
        >>> clean_text("  hello\\r\\nworld ")
        'hello ↲ world'
    """
    if not isinstance(value, str):
        value = str(value)
    text = value.strip()
    text = re.sub(r"[\r\n\b\f]", "\t", text)
    text = re.sub(r"\t+", delimiter, text)
    return re.sub(r"\s+", " ", text).strip()


# ============================================================================
# Timestamps
# ============================================================================


def epoch_ms_to_datetime(value) -> Optional[datetime]:
    """Convert an epoch-milliseconds value to a local wall-clock datetime.

    Args:
        value: Milliseconds since epoch (int, float or numeric string)

    Returns:
        Naive local datetime, or None if the value is not a number

    Example:
        >>> epoch_ms_to_datetime("not a number") is None
        True
    """
    try:
        millis = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if millis != millis:  # NaN
        return None
    try:
        return datetime.fromtimestamp(millis / 1000.0)
    except (OverflowError, OSError, ValueError):
        return None


def format_timestamp(
    moment: datetime,
    fmt: str,
    days: Sequence[str],
    months: Sequence[str],
) -> str:
    """strftime with configurable day and month names.

    ``%A``/``%a`` and ``%B``/``%b`` use ``days`` (Sunday first) and
    ``months``; ``%à`` is the two-letter day abbreviation. All other
    directives are handled by :meth:`datetime.strftime`.

    Example:
        >>> from common.config import DEFAULT_DAYS, DEFAULT_MONTHS
        >>> format_timestamp(datetime(2022, 4, 15, 7, 20), "%A %d. %B", DEFAULT_DAYS, DEFAULT_MONTHS)
        'Freitag 15. April'
    """
    day = days[(moment.weekday() + 1) % 7]
    month = months[moment.month - 1]
    names = {
        "%à": day[:2],
        "%a": day[:3],
        "%A": day,
        "%b": month[:3],
        "%B": month,
    }

    # Protect literal percent signs while substituting names
    parts = fmt.split("%%")
    rendered = []
    for part in parts:
        part = re.sub(r"%[àaAbB]", lambda m: names[m.group(0)].replace("%", "%%"), part)
        rendered.append(moment.strftime(part) if part else "")
    return "%".join(rendered)


def update_file_timestamps(file_path, epoch_seconds: Optional[float]) -> bool:
    """Set access and modification time of a file to a message timestamp.

    Args:
        file_path: Path to the file (string or Path object)
        epoch_seconds: Seconds since epoch, or None to skip

    Returns:
        True if timestamps were updated successfully, False otherwise
    """
    if epoch_seconds is None:
        return False

    try:
        os.utime(file_path, (epoch_seconds, epoch_seconds))
        return True
    except (ValueError, TypeError, OSError) as e:
        logger.error(f"could not adjust file timestamps for file '{file_path}'; {e}")
        return False


# ============================================================================
# Messages
# ============================================================================


def plural(word: str) -> str:
    """Return the English plural of ``word``.

    Example:
        >>> plural("entry"), plural("CSV file"), plural("class")
        ('entries', 'CSV files', 'classes')
    """
    if not word:
        return word
    last = word[-1]
    if last == "s":
        return word + "es"
    if last == "S":
        return word + "ES"
    if last == "y":
        return word[:-1] + "ies"
    if last == "Y":
        return word[:-1] + "IES"
    if last.isupper():
        return word + "S"
    return word + "s"


def singular_plural(count: int, word: str) -> str:
    """Return ``"<count> <word>"`` with the word pluralized unless count is 1."""
    return f"{count} {word if count == 1 else plural(word)}"
