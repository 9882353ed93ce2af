#!/usr/bin/env python3
"""
Duplicate Resolver

Three passes, all choosing the same survivor in a group of duplicates: the
member with the lowest ``duplicate_rank`` (collision counter used when it was
renamed, then its final name).

- Thumbnail pass: ``thumbnail_X`` is a reduced copy of ``media_X`` and is
  deleted (or marked) when the original exists.
- Within-folder pass: files with identical content in the same folder are
  reduced to the survivor.
- Archive-wide pass: files with identical content anywhere in the tree are
  listed in a manifest; nothing is deleted.

Every pass returns a new list of surviving entries instead of mutating the
list it was given.
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from common.config import RunConfig
from common.failure_tracker import StageReport
from common.file_utils import delete_file, write_text_file
from processors.threema.models import FileEntry

logger = logging.getLogger(__name__)

MANIFEST_EMPTY = "[none]"


def rank_key(entry: FileEntry) -> Tuple[int, str]:
    return entry.duplicate_rank


def eliminate_thumbnails(
    entries: List[FileEntry], config: RunConfig, report: Optional[StageReport] = None
) -> List[FileEntry]:
    """
    Delete or mark thumbnails whose original is part of the listing.

    A file is a thumbnail if replacing the first occurrence of
    ``thumbnail_find`` in its name by ``thumbnail_original`` yields the name
    of another listed file (extensions are ignored). Depending on
    ``delete_thumbnail_if_original_exists`` the thumbnail is deleted or its
    working name gets the ``thumbnail_found_marker`` prefix.

    Args:
        entries: All enumerated files
        config: Run configuration
        report: Stage report collecting deletions and failures

    Returns:
        Surviving entries in their original order
    """
    report = report or StageReport("thumbnails")
    names = {entry.base_name for entry in entries}
    find, original = config.thumbnail_find, config.thumbnail_original

    survivors = []
    for entry in entries:
        reduced = entry.base_name.replace(find, original, 1) if find else entry.base_name
        if reduced == entry.base_name or reduced not in names:
            survivors.append(entry)
            continue

        if config.delete_thumbnail_if_original_exists:
            result = report.record(delete_file(entry.full_path))
            if result.ok:
                logger.debug(f"deleted thumbnail '{entry.full_path}'; original '{reduced}' exists")
                continue
            survivors.append(entry)
        else:
            entry.working_name = config.thumbnail_found_marker + entry.base_name
            entry.thumbnail_marked = True
            report.add_success(entry.full_path, "mark thumbnail", reduced)
            logger.debug(f"marked thumbnail '{entry.full_path}'; original '{reduced}' exists")
            survivors.append(entry)

    return survivors


def _groups(entries: List[FileEntry], key) -> List[List[FileEntry]]:
    """Group fingerprinted entries by key, keeping first-seen group order."""
    grouped: Dict[object, List[FileEntry]] = defaultdict(list)
    for entry in entries:
        if entry.fingerprint is None:
            continue
        grouped[key(entry)].append(entry)
    return [sorted(members, key=rank_key) for members in grouped.values() if len(members) > 1]


def remove_duplicates_within_folder(
    entries: List[FileEntry], report: Optional[StageReport] = None
) -> List[FileEntry]:
    """
    Keep one file per (folder, fingerprint) and delete the others.

    Args:
        entries: Surviving, fingerprinted entries
        report: Stage report collecting deletions and failures

    Returns:
        Entries still present on disk
    """
    report = report or StageReport("duplicates")
    live: Set[int] = {id(entry) for entry in entries}

    for members in _groups(entries, lambda e: (str(e.current_path.parent), e.fingerprint)):
        survivor = members[0]
        for duplicate in members[1:]:
            if id(duplicate) not in live:
                continue
            result = report.record(delete_file(duplicate.current_path))
            if result.ok:
                live.discard(id(duplicate))
                logger.debug(
                    f"deleted duplicate '{duplicate.current_path}' of '{survivor.current_path}'"
                )

    return [entry for entry in entries if id(entry) in live]


def duplicate_groups(entries: List[FileEntry]) -> List[List[FileEntry]]:
    """Group surviving entries by fingerprint across the whole tree."""
    return _groups(entries, lambda e: e.fingerprint)


def format_manifest(groups: List[List[FileEntry]]) -> str:
    """
    Render duplicate groups as text: one path per line, groups separated by
    a blank line, ``[none]`` if there are no groups.
    """
    if not groups:
        return MANIFEST_EMPTY
    return "\n\n".join("\n".join(str(e.current_path) for e in members) for members in groups)


def write_manifest(
    entries: List[FileEntry], manifest_path: Path, report: Optional[StageReport] = None
) -> List[List[FileEntry]]:
    """
    Write the archive-wide duplicate manifest.

    Returns:
        The duplicate groups that were listed
    """
    report = report or StageReport("manifest")
    groups = duplicate_groups(entries)
    result = report.record(write_text_file(manifest_path, format_manifest(groups)))
    if result.ok:
        logger.info(f"{len(groups)} groups of duplicates listed in '{manifest_path}'")
    return groups
