#!/usr/bin/env python3
"""
Processing utility functions

Provides the standardized end-of-run summary printed by the CLI.
"""

import os
from typing import Dict, Optional


def print_processing_summary(
    success: int,
    failed: int,
    total: int,
    output_dir: str,
    extra_stats: Optional[Dict[str, int]] = None,
) -> None:
    """
    Print standardized processing completion summary.

    Displays a formatted summary of processing results including success/failure
    counts and the processed folder.

    Args:
        success: Number of files that ended up at their destination
        failed: Number of failed per-item operations
        total: Total number of files found
        output_dir: Processed folder (will be converted to absolute path)
        extra_stats: Optional dict of additional statistics to display
                     Keys are labels, values are counts

    Example:
        >>> print_processing_summary(
        ...     success=95,
        ...     failed=1,
        ...     total=100,
        ...     output_dir="./backup",
        ...     extra_stats={"Thumbnails removed": 4, "Duplicates removed": 3}
        ... )
        ==================================================
        Processing complete!
          Successfully processed: 95
          Failed: 1
          Thumbnails removed: 4
          Duplicates removed: 3
          Total: 100

        Files reorganized in: /absolute/path/to/backup
    """
    print("\n" + "=" * 50)
    print("Processing complete!")
    print(f"  Successfully processed: {success}")
    print(f"  Failed: {failed}")

    if extra_stats:
        for label, count in extra_stats.items():
            print(f"  {label}: {count}")

    print(f"  Total: {total}")
    print(f"\nFiles reorganized in: {os.path.abspath(output_dir)}")
