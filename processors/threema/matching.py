#!/usr/bin/env python3
"""
Filename Tokenizer & Matcher

Backup filenames are ``_``-joined opaque tokens, e.g.
``media_3f9a21c8e7_ABCD1234``. Some tokens are message uids (keys of the
timestamp index), some are identities (keys of the identity index); the rest
are fixed words such as ``media`` or ``thumbnail``.

All functions here are pure lookups; the naming policy composes them.
"""

import re
from typing import Iterable, List, Mapping, Optional, Sequence

from common.config import RunConfig
from common.utils import sanitize_platform_name
from processors.threema.models import Identity, TimestampIndexEntry

TOKEN_SEPARATOR = "_"


def tokenize(name: str) -> List[str]:
    """Split a filename (without extension) into its tokens."""
    return name.split(TOKEN_SEPARATOR)


def timestamp_tokens(
    tokens: Iterable[str], timestamp_index: Mapping[str, TimestampIndexEntry]
) -> List[str]:
    """Return the distinct tokens that are message uids, in token order."""
    found: List[str] = []
    for token in tokens:
        if token in timestamp_index and token not in found:
            found.append(token)
    return found


def match_timestamp(
    tokens: Iterable[str], timestamp_index: Mapping[str, TimestampIndexEntry]
) -> Optional[TimestampIndexEntry]:
    """
    Find the timestamp entry for a filename.

    The first token that is a uid wins; filenames are expected to carry at
    most one uid.
    """
    for token in tokens:
        entry = timestamp_index.get(token)
        if entry is not None:
            return entry
    return None


def match_identity(
    tokens: Sequence[str], identities: Mapping[str, Identity]
) -> Optional[Identity]:
    """
    Find the identity referenced by a filename.

    First pass: a token equal to an identity key, in token order. Second
    pass: a token equal to an identity's secondary id (group ids show up
    standalone in some filenames).

    Example:
        >>> match_identity(["group", "99"], index)  # doctest: +SKIP
        Identity(identity='99-ABCD1234', display_name='Team 99', ...)
    """
    for token in tokens:
        identity = identities.get(token)
        if identity is not None:
            return identity

    for token in tokens:
        for identity in identities.values():
            if identity.secondary_id and identity.secondary_id == token:
                return identity
    return None


def remove_token(name: str, token: str) -> str:
    """Remove the first occurrence of ``token`` from the tokens of ``name``."""
    tokens = tokenize(name)
    if token in tokens:
        tokens.remove(token)
    return TOKEN_SEPARATOR.join(tokens)


def replace_parts(
    tokens: Sequence[str],
    identities: Mapping[str, Identity],
    config: RunConfig,
    substitute_parts: bool = True,
    substitute_strings: bool = False,
    substitute_identities: bool = True,
) -> str:
    """
    Turn filename tokens into a readable, platform-safe name.

    Each token that resolves to an identity becomes its display name;
    otherwise a token listed in ``replace_file_name_part`` becomes its
    configured replacement (an empty replacement drops it). The result is
    re-joined with ``_``, repeated separators are collapsed, leading ``_``
    and trailing ``_``/``.`` are removed. With ``substitute_strings`` the
    ``replace_string_part`` substitutions are applied to the joined string.

    Args:
        tokens: Filename tokens
        identities: Identity index
        config: Run configuration with the substitution tables
        substitute_parts: Apply ``replace_file_name_part``
        substitute_strings: Apply ``replace_string_part``
        substitute_identities: Replace identities by display names

    Returns:
        Sanitized name

    Example:
        >>> replace_parts(["message", "ABCD1234"], index, RunConfig())  # doctest: +SKIP
        'Muster Max ABCD1234'
    """
    parts = []
    for token in tokens:
        identity = match_identity([token], identities) if substitute_identities else None
        if identity is not None:
            parts.append(identity.display_name)
        elif substitute_parts and token in config.replace_file_name_part:
            parts.append(config.replace_file_name_part[token])
        else:
            parts.append(token)

    name = TOKEN_SEPARATOR.join(parts)
    name = re.sub(r"_{2,}", "_", name)
    name = re.sub(r"^_", "", name)
    name = re.sub(r"[_.]+$", "", name)

    if substitute_strings:
        for find, replacement in config.replace_string_part.items():
            if find:
                name = name.replace(find, replacement)

    return sanitize_platform_name(name)
