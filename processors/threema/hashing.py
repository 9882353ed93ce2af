#!/usr/bin/env python3
"""
Content Hasher

Duplicates are files with identical content, so the fingerprint is a SHA-256
digest of the full file. Files that cannot have a twin are not hashed:
candidates are bucketed by size and then by a fast xxHash-128 digest, and
only files sharing a bucket get their SHA-256 fingerprint.
"""

import hashlib
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import xxhash

from common.failure_tracker import StageReport
from common.progress import PHASE_DEDUP, progress_bar
from processors.threema.models import FileEntry

logger = logging.getLogger(__name__)

# 8MB read buffer
CHUNK_SIZE = 8388608


def fingerprint(file_path: Path) -> str:
    """
    Calculate the SHA-256 digest of a file.

    Args:
        file_path: Path to the file

    Returns:
        Hex digest (64 characters)

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def quick_digest(file_path: Path) -> str:
    """Calculate the xxHash (128-bit) digest of a file, used for pre-bucketing."""
    hasher = xxhash.xxh128()
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def _shared_buckets(groups: Dict[object, List[FileEntry]]) -> List[FileEntry]:
    return [entry for members in groups.values() if len(members) > 1 for entry in members]


def compute_fingerprints(
    entries: Iterable[FileEntry], report: Optional[StageReport] = None
) -> int:
    """
    Set ``fingerprint`` on every entry that might have a duplicate.

    Entries are read at their current path. An entry whose file cannot be
    read is reported and keeps ``fingerprint = None``, which excludes it from
    duplicate grouping.

    Args:
        entries: Surviving file entries
        report: Stage report collecting hash failures

    Returns:
        Number of fingerprints computed
    """
    report = report or StageReport("hashing")

    by_size: Dict[int, List[FileEntry]] = defaultdict(list)
    for entry in entries:
        entry.fingerprint = None
        try:
            size = entry.current_path.stat().st_size
        except OSError as e:
            report.add_failure(entry.current_path, "calculate hash for", str(e))
            continue
        by_size[size].append(entry)

    by_quick: Dict[str, List[FileEntry]] = defaultdict(list)
    for entry in progress_bar(_shared_buckets(by_size), PHASE_DEDUP, "Pre-hashing files"):
        try:
            by_quick[quick_digest(entry.current_path)].append(entry)
        except OSError as e:
            report.add_failure(entry.current_path, "calculate hash for", str(e))

    computed = 0
    for entry in progress_bar(_shared_buckets(by_quick), PHASE_DEDUP, "Hashing files"):
        try:
            entry.fingerprint = fingerprint(entry.current_path)
        except OSError as e:
            report.add_failure(entry.current_path, "calculate hash for", str(e))
            continue
        computed += 1

    logger.info(f"calculated {computed} fingerprints for possible duplicates")
    return computed
