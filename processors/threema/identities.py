#!/usr/bin/env python3
"""
Identity Index

Builds the lookup from identity keys to contacts and groups, read from the
backup's ``contacts.csv`` and ``groups.csv`` tables.

Contacts are keyed by their personal identity (e.g. ``ABCD1234``); groups by
``<group id>-<creator identity>``, which is how the app refers to a group in
conversation filenames.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from common.failure_tracker import StageReport
from common.logging_config import TRACE
from common.utils import sanitize_platform_name, singular_plural, unique_token_join
from processors.threema.models import Identity

logger = logging.getLogger(__name__)

CONTACT_COLUMNS = ("identity", "lastname", "firstname", "nick_name")
GROUP_COLUMNS = ("id", "creator", "groupname")


def _field(row: Mapping[str, str], name: str) -> str:
    value = row.get(name)
    return value if isinstance(value, str) else ""


def contact_identity(row: Mapping[str, str]) -> Identity:
    """
    Build an Identity from a row of the contacts table.

    The display name joins last name, first name, nickname and identity,
    dropping case-insensitive repeats and empty parts.

    Raises:
        ValueError: If the row has no identity

    Example:
        >>> contact_identity({"lastname": "Muster", "firstname": "Max",
        ...                   "nick_name": "", "identity": "ABCD1234"}).display_name
        'Muster Max ABCD1234'
    """
    key = _field(row, "identity").strip()
    if not key:
        raise ValueError("contact without identity")

    tokens = (
        _field(row, "lastname").split(" ")
        + _field(row, "firstname").split(" ")
        + _field(row, "nick_name").split(" ")
        + [key]
    )
    display_name = sanitize_platform_name(unique_token_join(t for t in tokens if t))
    return Identity(
        identity=key,
        display_name=display_name,
        kind="contact",
        fields={c: _field(row, c) for c in CONTACT_COLUMNS},
    )


def group_identity(row: Mapping[str, str]) -> Identity:
    """
    Build an Identity from a row of the groups table.

    Raises:
        ValueError: If the row lacks the group id or creator

    Example:
        >>> group = group_identity({"groupname": "Team", "id": "99", "creator": "ABCD1234"})
        >>> group.identity, group.display_name
        ('99-ABCD1234', 'Team 99')
    """
    group_id = _field(row, "id").strip()
    creator = _field(row, "creator").strip()
    if not group_id or not creator:
        raise ValueError("group without id or creator")

    key = f"{group_id}-{creator}"
    group_name = _field(row, "groupname").strip()
    display_name = sanitize_platform_name(f"{group_name} {group_id}" if group_name else key)
    return Identity(
        identity=key,
        display_name=display_name,
        kind="group",
        secondary_id=group_id,
        fields={c: _field(row, c) for c in GROUP_COLUMNS},
    )


def build_identity_index(
    contact_rows: Iterable[Mapping[str, str]],
    group_rows: Iterable[Mapping[str, str]],
    report: Optional[StageReport] = None,
) -> Mapping[str, Identity]:
    """
    Build the read-only identity lookup.

    Malformed rows are logged and skipped. If two rows share an identity key
    the first one is kept.

    Args:
        contact_rows: Rows of the contacts table(s)
        group_rows: Rows of the groups table(s)
        report: Optional stage report collecting per-row failures

    Returns:
        Mapping of identity key to Identity
    """
    report = report or StageReport("identities")
    index: Dict[str, Identity] = {}

    sources = (("contact", contact_identity, contact_rows), ("group", group_identity, group_rows))
    for kind, build, rows in sources:
        count = 0
        for position, row in enumerate(rows, start=1):
            try:
                identity = build(row)
            except ValueError as e:
                report.add_failure(f"{kind} row {position}", f"read {kind}", str(e))
                continue

            if identity.identity in index:
                logger.warning(f"{kind} '{identity.identity}' listed more than once; first entry kept")
                continue

            index[identity.identity] = identity
            report.add_success(identity.identity, f"read {kind}")
            logger.log(TRACE, f"{kind} '{identity.identity}' is '{identity.display_name}'")
            count += 1
        logger.info(f"{singular_plural(count, kind)} found")

    return MappingProxyType(index)
