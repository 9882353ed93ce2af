#!/usr/bin/env python3
"""
Timestamp Index and transcript extraction

Every non-text row of a conversation table describes an attachment file whose
name contains the row's ``uid``. The timestamp index maps that uid to the
message time, the conversation folder and the original file extension.

Text rows (and captions) are collected into one transcript per conversation.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from common.config import TEXT_COLUMNS, RunConfig
from common.failure_tracker import StageReport
from common.utils import clean_text, epoch_ms_to_datetime, format_timestamp
from processors.threema.models import (
    ConversationTable,
    Identity,
    MessageRecord,
    TimestampIndexEntry,
)

logger = logging.getLogger(__name__)

# Attachment bodies are JSON arrays; the original filename sits at this position
ORIGINAL_FILENAME_POSITION = 4


def infer_extension(body: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Derive the original extension from a structured attachment body.

    Args:
        body: Raw ``body`` cell of an attachment row

    Returns:
        Tuple of (extension or None, parse error message or None)

    Example:
        >>> infer_extension('[0,"x","image/jpeg",1234,"IMG_0001.JPG"]')
        ('JPG', None)
    """
    if not body:
        return None, None
    try:
        data = json.loads(body.replace('\\\\"', "'"))
    except ValueError as e:
        return None, str(e)

    if isinstance(data, list) and len(data) > ORIGINAL_FILENAME_POSITION:
        original = data[ORIGINAL_FILENAME_POSITION]
        if isinstance(original, str):
            return original.split(".")[-1], None
    return None, None


def message_records(
    rows: Iterable[Mapping[str, str]], table_name: str, report: StageReport
) -> List[MessageRecord]:
    """
    Convert the raw rows of a conversation table into MessageRecords.

    Rows whose ``created_at`` is not an epoch-milliseconds value are reported
    and left out. Unparseable attachment bodies are logged; the row is kept
    without an extension hint.
    """
    records = []
    for position, row in enumerate(rows):
        created_at = (row.get("created_at") or "").strip()
        timestamp = epoch_ms_to_datetime(created_at)
        if timestamp is None:
            report.add_failure(
                f"{table_name} row {position + 1}",
                "read message",
                f"invalid created_at '{created_at}'",
            )
            continue

        record = MessageRecord(
            uid=(row.get("uid") or "").strip(),
            type=(row.get("type") or "").strip(),
            created_at=float(created_at),
            timestamp=timestamp,
            row_index=position,
            body=row.get("body") or "",
            caption=row.get("caption") or "",
            author_identity=(row.get("identity") or "").strip() or None,
        )

        if not record.is_text:
            extension, error = infer_extension(record.body)
            if error:
                logger.error(
                    f"could not convert body='{record.body}' to JSON (file='{table_name}'); {error}"
                )
            record.inferred_extension = extension

        records.append(record)
    return records


def add_to_index(
    index: Dict[str, TimestampIndexEntry],
    records: Iterable[MessageRecord],
    folder: Path,
    report: StageReport,
) -> int:
    """
    Add one entry per attachment row to the timestamp index.

    A uid that is already indexed is an integrity anomaly: it is reported and
    the existing entry is kept.

    Returns:
        Number of entries added
    """
    added = 0
    for record in records:
        if record.is_text or not record.uid:
            continue
        if record.uid in index:
            report.add_anomaly(
                f"file timestamp collision; uid '{record.uid}' occurs more than once",
                {"uid": record.uid, "folder": str(folder)},
            )
            continue
        index[record.uid] = TimestampIndexEntry(
            uid=record.uid,
            timestamp=record.timestamp,
            epoch_seconds=record.epoch_seconds,
            destination_folder=folder,
            inferred_extension=record.inferred_extension,
        )
        added += 1
    return added


def build_timestamp_index(
    tables: Iterable[ConversationTable], report: Optional[StageReport] = None
) -> Mapping[str, TimestampIndexEntry]:
    """
    Build the read-only uid lookup from parsed conversation tables.

    Tables are processed in the given order, so on a uid collision the entry
    of the earlier table wins.
    """
    report = report or StageReport("timestamps")
    index: Dict[str, TimestampIndexEntry] = {}
    for table in tables:
        if table.is_conversation:
            add_to_index(index, table.rows, table.folder, report)
    return MappingProxyType(index)


def _is_structured(value: str) -> bool:
    """True if a text cell actually holds a JSON array (an attachment description)."""
    try:
        return isinstance(json.loads(value), list)
    except ValueError:
        return False


def transcript_lines(
    records: Iterable[MessageRecord],
    identities: Mapping[str, Identity],
    config: RunConfig,
) -> List[str]:
    """
    Collect the transcript lines of one conversation.

    Every non-empty ``body`` or ``caption`` that is not an attachment
    description becomes ``[timestamp] text [author]``; the author part is
    omitted when the sender is unknown. Lines are ordered by message time,
    then by row position.
    """
    keyed = []
    for record in records:
        author = identities.get(record.author_identity) if record.author_identity else None
        for column in TEXT_COLUMNS:
            value = getattr(record, column)
            if not value or _is_structured(value):
                continue
            line = (
                f"[{format_timestamp(record.timestamp, config.text_timestamp_format, config.days, config.months)}] "
                f"{clean_text(value)}"
            )
            if author is not None:
                line += f" [{author.display_name}]"
            keyed.append(((record.created_at, record.row_index), line))

    keyed.sort(key=lambda item: item[0])
    return [line for _, line in keyed]
