"""
Test backup generator functions.

These functions create minimal but valid unpacked Threema backups: the
contacts and groups tables, conversation tables and attachment files named
the way the app names them. Used by fixtures to create test data.
"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from common.utils import sanitize_platform_name
from tests.fixtures.media_samples import write_media_file

CONTACT_HEADERS = ["identity", "publickey", "verification", "lastname", "firstname", "nick_name"]
GROUP_HEADERS = ["id", "creator", "groupname", "created_at", "members"]
MESSAGE_HEADERS = ["uid", "isoutbox", "type", "body", "caption", "created_at", "identity"]

# 2022-04-15 05:20:00 UTC
SCENARIO_CREATED_AT = 1650000000000

DEFAULT_CONTACTS = [
    {"identity": "ABCD1234", "lastname": "Muster", "firstname": "Max", "nick_name": ""},
]


def write_csv(path: Path, headers: List[str], rows: List[Dict[str, str]]) -> Path:
    """Write a comma-delimited, double-quoted table like the app exports it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=headers, quoting=csv.QUOTE_ALL, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({h: row.get(h, "") for h in headers})
    return path


def attachment_body(original_filename: str, mime_type: str = "image/jpeg") -> str:
    """Build the structured body of an attachment message."""
    return json.dumps(["a1b2c3", "0f0f0f", mime_type, 1234, original_filename])


def message_row(
    uid: str,
    created_at: int = SCENARIO_CREATED_AT,
    type_: str = "text",
    body: str = "",
    caption: str = "",
    identity: str = "",
) -> Dict[str, str]:
    """Build one conversation table row."""
    return {
        "uid": uid,
        "isoutbox": "0",
        "type": type_,
        "body": body,
        "caption": caption,
        "created_at": str(created_at),
        "identity": identity,
    }


def create_threema_backup(
    base_path: Path,
    contacts: Optional[List[Dict[str, str]]] = None,
    groups: Optional[List[Dict[str, str]]] = None,
    conversations: Optional[Dict[str, List[Dict[str, str]]]] = None,
    media: Optional[Dict[str, Union[str, bytes]]] = None,
) -> Path:
    """Create a minimal unpacked Threema backup.

    Structure:
        {base_path}/
            contacts.csv
            groups.csv (optional)
            message_<identity>.csv ...
            <attachment files>

    Args:
        base_path: Directory for the backup
        contacts: Contact rows (default: one contact ABCD1234)
        groups: Group rows; groups.csv is only written if given
        conversations: Mapping of table name (without .csv) to rows
        media: Mapping of filename to media type ("jpeg", "png", "mp4") or raw bytes

    Returns:
        Path to the created backup directory
    """
    base_path.mkdir(parents=True, exist_ok=True)
    write_csv(base_path / "contacts.csv", CONTACT_HEADERS, contacts if contacts is not None else DEFAULT_CONTACTS)

    if groups is not None:
        write_csv(base_path / "groups.csv", GROUP_HEADERS, groups)

    for table_name, rows in (conversations or {}).items():
        write_csv(base_path / f"{table_name}.csv", MESSAGE_HEADERS, rows)

    for filename, content in (media or {}).items():
        path = base_path / filename
        if isinstance(content, bytes):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        else:
            write_media_file(path, content)

    return base_path


def create_scenario_backup(base_path: Path) -> Path:
    """Create the reference backup: one contact, one conversation, one attachment.

    - contacts.csv with contact ABCD1234 (Max Muster)
    - message_ABCD1234.csv with a text message "hello" and an image message uid001
    - media_uid001_ABCD1234 (a JPEG without extension)
    """
    return create_threema_backup(
        base_path,
        conversations={
            "message_ABCD1234": [
                message_row("1", body="hello", identity="ABCD1234"),
                message_row(
                    "uid001",
                    type_="image",
                    body=attachment_body("IMG_0001.jpg"),
                    identity="ABCD1234",
                ),
            ],
        },
        media={"media_uid001_ABCD1234": "jpeg"},
    )


def formatted_time(epoch_ms: int, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Local wall-clock rendering of an epoch-milliseconds value, as used in filenames."""
    return sanitize_platform_name(datetime.fromtimestamp(epoch_ms / 1000).strftime(fmt))
