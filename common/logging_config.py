"""
Centralized Logging Configuration

This module provides unified logging configuration for the reconciliation run.
It ensures consistent log formats, levels, and behavior across all components.

Log Level Conventions:
    TRACE    - Token-by-token matching details
    DEBUG    - File-by-file operations (renamed, deleted, timestamps set)
    INFO     - Stage transitions, counts, effective configuration
    WARNING  - Recoverable issues, undetermined file types, skipped tables
    ERROR    - Per-item failures (rename, hash, write, parse)
    CRITICAL - Integrity anomalies and run-aborting conditions ("fatal")

Example:
    >>> import logging
    >>> from common.logging_config import setup_logging
    >>> setup_logging(verbose=True, log_file="backtrack.log", level_name="debug")
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("Processing started")
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

# =============================================================================
# Format Constants - Single source of truth for log formats
# =============================================================================

LOG_FORMAT_DETAILED = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
"""Detailed format including timestamp and module name, used for verbose/file logging."""

LOG_FORMAT_SIMPLE = "%(levelname)s: %(message)s"
"""Simple format for non-verbose console output."""

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
"""Standard date format for all log timestamps."""

TRACE = 5
"""Numeric level below DEBUG for token-level matching output."""

LEVEL_NAMES: Dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}
"""Configuration level names mapped to logging levels."""

# =============================================================================
# Suppressed Loggers - Third-party libraries that are too noisy
# =============================================================================

SUPPRESSED_LOGGERS: List[str] = [
    "magic",
]
"""List of third-party logger names to suppress to WARNING level."""

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(logging.CRITICAL, "FATAL")


def level_from_name(name: Optional[str], default: int = logging.INFO) -> int:
    """Translate a configuration level name into a logging level.

    Args:
        name: One of the keys of LEVEL_NAMES (case-insensitive)
        default: Level returned for unknown or missing names

    Returns:
        Numeric logging level

    Example:
        >>> level_from_name("warn")
        30
    """
    if not name:
        return default
    return LEVEL_NAMES.get(str(name).lower(), default)


def default_log_filename(prefix: str = "backtrack") -> str:
    """Build the default run-log filename, e.g. ``backtrack_20220505185831.log``."""
    return f"{prefix}_{datetime.now().strftime('%Y%m%d%H%M%S')}.log"


# =============================================================================
# Main Logging Setup Functions
# =============================================================================


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    level_name: str = "info",
) -> logging.Logger:
    """Configure logging for a reconciliation run.

    Sets up console logging with appropriate level and optional file logging.

    In normal mode (verbose=False):
    - Console shows WARNING and above (clean output with progress bars)

    In verbose mode (verbose=True):
    - Console shows the configured minimum level and above

    The run log file (if any) always receives the configured minimum level.

    Args:
        verbose: If True, enable verbose console output
        log_file: Optional path to log file for persistent logging
        level_name: Configured minimum level name (trace, debug, info, warn, error, fatal)

    Returns:
        Configured root logger
    """
    level = level_from_name(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(level, logging.WARNING))

    # Clear any existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level if verbose else max(level, logging.WARNING))

    if verbose:
        formatter = logging.Formatter(LOG_FORMAT_DETAILED, datefmt=LOG_DATE_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT_SIMPLE)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        add_run_log_handler(log_file, level_name)

    for library in SUPPRESSED_LOGGERS:
        logging.getLogger(library).setLevel(logging.WARNING)

    return root_logger


def add_run_log_handler(
    log_file: str, level_name: str = "info"
) -> Optional[logging.FileHandler]:
    """Attach the persistent run log to the root logger.

    The run log is opened lazily by the caller once the source directory is
    known, so it can live next to the files being processed.

    Args:
        log_file: Path of the log file (appended, UTF-8)
        level_name: Configured minimum level name

    Returns:
        The created FileHandler, or None if the file could not be opened
    """
    level = level_from_name(level_name)
    root_logger = logging.getLogger()

    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8", delay=True)
    except OSError as e:
        root_logger.error(f"could not open log file '{log_file}': {e}")
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter(LOG_FORMAT_DETAILED, datefmt=LOG_DATE_FORMAT)
    )
    root_logger.addHandler(file_handler)
    if level < root_logger.level:
        root_logger.setLevel(level)
    return file_handler


def remove_run_log_handler(handler: Optional[logging.FileHandler]) -> None:
    """Remove a run log handler from the root logger and close the file.

    Args:
        handler: The FileHandler to remove (returned by add_run_log_handler)
    """
    if handler is None:
        return

    root_logger = logging.getLogger()
    root_logger.removeHandler(handler)
    handler.close()

