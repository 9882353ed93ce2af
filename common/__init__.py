"""
Common modules shared by the backup processors.

This package contains configuration, logging, file-system and text helpers
used throughout a reconciliation run.
"""

from .config import RunConfig, load_config
from .failure_tracker import ItemResult, StageReport
from .logging_config import setup_logging

__version__ = "1.0.0"
__all__ = [
    "ItemResult",
    "RunConfig",
    "StageReport",
    "load_config",
    "setup_logging",
]
