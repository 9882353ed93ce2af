#!/usr/bin/env python3
"""
Threema Processor Module

Reorganizes unpacked Threema backups: correlates attachment files with their
conversations, renames them after the message time and removes duplicates.
"""

from processors.threema.processor import (
    SourceDirectoryError,
    ThreemaProcessor,
    get_processor,
)

__all__ = ["SourceDirectoryError", "ThreemaProcessor", "get_processor"]
