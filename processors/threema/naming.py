#!/usr/bin/env python3
"""
Naming Policy

Derives the destination folder, name and extension of a backup file from
the uid and identity tokens in its name.

For an attachment ``media_<uid>_<identity>`` of a conversation the result is
``<conversation folder>/<formatted message time>.<sniffed extension>``; files
that correlate with nothing keep their folder and get a cleaned-up name.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Mapping, Optional

from common.config import RunConfig
from common.failure_tracker import StageReport
from common.file_utils import sniff_extension
from common.utils import format_timestamp, sanitize_platform_name
from processors.threema.matching import (
    match_identity,
    match_timestamp,
    remove_token,
    replace_parts,
    timestamp_tokens,
    tokenize,
)
from processors.threema.models import (
    ConversationTable,
    Destination,
    FileEntry,
    Identity,
    TimestampIndexEntry,
)

logger = logging.getLogger(__name__)

# Files with these extensions stay where they are and keep their names
NON_MEDIA_EXTENSIONS = {"csv", "txt", "log"}

# Files that are typed by their extension instead of their content
PSEUDO_TYPE_NAMES = re.compile(r"identity|settings", re.IGNORECASE)


def timestamp_prefix(entry: TimestampIndexEntry, config: RunConfig) -> str:
    """Filename prefix for a message time, e.g. ``'2022-04-15 07:20:00 '``."""
    formatted = format_timestamp(
        entry.timestamp, config.file_timestamp_format, config.days, config.months
    )
    return sanitize_platform_name(formatted + " ")


def determine_type(file: FileEntry, sniff: Callable[[Path], Optional[str]]) -> Optional[str]:
    """
    Return the file type as an extension (without dot) or None if unknown.

    The identity and settings files are typed by their existing extension;
    everything else by content.
    """
    extension = file.extension.lower()
    if PSEUDO_TYPE_NAMES.search(file.base_name):
        return extension or None
    return sniff(file.current_path)


def resolve_destination(
    file: FileEntry,
    timestamp_index: Mapping[str, TimestampIndexEntry],
    identities: Mapping[str, Identity],
    tables_by_identity: Mapping[str, ConversationTable],
    config: RunConfig,
    sniff: Callable[[Path], Optional[str]] = sniff_extension,
    report: Optional[StageReport] = None,
) -> Destination:
    """
    Compute where a file belongs.

    Steps:
    1. Start from the working name (which may carry the thumbnail marker).
    2. csv/txt/log files keep their place and name.
    3. Determine the type by extension or content.
    4. A uid token selects the message: its conversation folder, its
       extension hint and a timestamp prefix; the uid token is removed and
       so is any copy of the prefix left by an earlier run.
    5. An identity token with a known conversation selects that folder and
       is removed.
    6. Remaining tokens are substituted; the timestamp prefix is prepended.
    7. The extension is the detected type, else the hint, else the original
       extension (with a warning).

    Marked thumbnails keep their working name as is; folder, extension and
    timestamp are still resolved.

    Args:
        file: Entry to place
        timestamp_index: uid lookup
        identities: Identity lookup
        tables_by_identity: Conversation tables keyed by identity key
        config: Run configuration
        sniff: Content type detector
        report: Stage report receiving integrity anomalies

    Returns:
        Destination for the file
    """
    original_extension = file.extension.lower()
    name = file.working_name
    folder = file.directory

    if original_extension in NON_MEDIA_EXTENSIONS:
        return Destination(folder=folder, name=name, extension=original_extension)

    detected = determine_type(file, sniff)
    tokens = tokenize(file.base_name)

    timestamp: Optional[TimestampIndexEntry] = None
    prefix = ""
    uids = timestamp_tokens(tokens, timestamp_index)
    if uids:
        if len(uids) > 1 and report is not None:
            report.add_anomaly(
                f"file '{file.full_path}' contains {len(uids)} message uids "
                f"({', '.join(uids)}); using '{uids[0]}'",
                {"file": str(file.full_path), "uids": uids},
            )
        timestamp = match_timestamp(tokens, timestamp_index)
        folder = timestamp.destination_folder
        prefix = timestamp_prefix(timestamp, config)
        if not file.thumbnail_marked:
            name = remove_token(name, timestamp.uid)
            while prefix and prefix in name:
                name = name.replace(prefix, "", 1)

    identity = match_identity(tokens, identities)
    if identity is not None:
        table = tables_by_identity.get(identity.identity)
        if table is not None and table.folder is not None:
            folder = table.folder
            if not file.thumbnail_marked:
                name = remove_token(name, identity.identity)

    if not file.thumbnail_marked:
        name = replace_parts(tokenize(name), identities, config, substitute_strings=True)
        name = (prefix + name).strip()
        if not name:
            # Every token was substituted away
            name = sanitize_platform_name(file.working_name)

    if detected:
        extension = detected.lower()
        determined = True
    elif timestamp is not None and timestamp.inferred_extension:
        extension = timestamp.inferred_extension.lower()
        determined = True
    else:
        extension = original_extension
        determined = False
        logger.warning(f"could not determine file type for file '{file.full_path}'")

    return Destination(
        folder=folder,
        name=name,
        extension=extension,
        timestamp=timestamp,
        type_determined=determined,
    )
