#!/usr/bin/env python3
"""
Unified progress bar utilities for consistent console output.

Provides standardized progress bar formatting with phase prefixes to clearly
indicate which stage of the reconciliation run is active.
"""

from typing import Iterable, Optional, TypeVar

from tqdm import tqdm

# Phase constants for consistent naming
PHASE_INDEX = "Index"
PHASE_RENAME = "Rename"
PHASE_DEDUP = "Dedup"

T = TypeVar("T")


def progress_bar(
    iterable: Iterable[T],
    phase: str,
    action: str,
    total: Optional[int] = None,
    unit: str = "file",
    disable: Optional[bool] = None,
) -> tqdm:
    """Wrap iterable with standardized progress bar.

    Args:
        iterable: The iterable to wrap
        phase: Phase name (use PHASE_* constants)
        action: Action description (e.g., "Renaming files")
        total: Total count if known
        unit: Unit name for display
        disable: Passed to tqdm; None hides the bar when not attached to a terminal

    Returns:
        tqdm progress bar wrapping the iterable
    """
    return tqdm(
        iterable,
        desc=f"[{phase}] {action}",
        total=total,
        unit=unit,
        disable=disable,
        leave=False,
    )
