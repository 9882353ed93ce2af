#!/usr/bin/env python3
"""
Run Configuration Module

Centralized configuration for a reconciliation run: behavior toggles, output
filenames, timestamp formats and filename substitution rules.

The configuration is an immutable value built once at startup (defaults,
optionally overlaid by a JSON config file) and handed explicitly to every
component that needs it.
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from common.logging_config import LEVEL_NAMES, default_log_filename

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "backtrack.config"

DEFAULT_DAYS = (
    "Sonntag", "Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag",
)
DEFAULT_MONTHS = (
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
)
DEFAULT_REPLACE_FILE_NAME_PART = {
    "group": "",
    "media": "",
    "message": "",
    "thumbnail": "tn",
}

# Tables with these names carry administrative data, not conversations
CONTACTS_TABLE = "contacts"
GROUPS_TABLE = "groups"
SKIP_TABLES = frozenset(
    {"ballot", "ballot_choice", "ballot_vote", "distribution_list", CONTACTS_TABLE, GROUPS_TABLE}
)

# Columns a conversation table must carry
MESSAGE_TABLE_HEADERS = ("uid", "type", "created_at")
TEXT_COLUMNS = ("body", "caption")


class ConfigError(ValueError):
    """Raised when a configuration document fails validation."""


@dataclass(frozen=True)
class RunConfig:
    """Immutable behavior settings for one run."""

    minimum_level_for_logging: str = "info"
    log_to: str = field(default_factory=default_log_filename)
    delete_thumbnail_if_original_exists: bool = True
    remove_duplicates_within_folder: bool = True
    remove_empty_folders: bool = True
    save_duplicate_file_names_to: str = "_duplicates.txt"
    save_messages_texts_to: str = "_texts.txt"
    file_timestamp_format: str = "%Y-%m-%d %H:%M:%S"
    text_timestamp_format: str = "%Y-%m-%d %H:%M:%S"
    days: Tuple[str, ...] = DEFAULT_DAYS
    months: Tuple[str, ...] = DEFAULT_MONTHS
    replace_file_name_part: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_REPLACE_FILE_NAME_PART)
    )
    replace_string_part: Mapping[str, str] = field(default_factory=dict)
    thumbnail_find: str = "thumbnail"
    thumbnail_original: str = "media"
    thumbnail_found_marker: str = "~_"

    def __post_init__(self):
        # Freeze the container fields as well
        object.__setattr__(self, "days", tuple(self.days))
        object.__setattr__(self, "months", tuple(self.months))
        object.__setattr__(
            self, "replace_file_name_part", MappingProxyType(dict(self.replace_file_name_part))
        )
        object.__setattr__(
            self, "replace_string_part", MappingProxyType(dict(self.replace_string_part))
        )

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Return a copy with some fields replaced (used by tests and the CLI)."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, Mapping):
                value = dict(value)
            data[f.name] = value
        return data


def format_configuration(config: RunConfig) -> str:
    """Format a configuration for logging, one indented key per line.

    Lists are folded onto a single line to keep the output compact.
    """
    lines = json.dumps(config.to_dict(), indent=2, ensure_ascii=False).split("\n")
    text = "\n".join("  " + line for line in lines)
    return re.sub(
        r"\[([^\]]*)\]",
        lambda m: "[" + re.sub(r"\s+", " ", m.group(1)).strip() + "]",
        text,
    )


def validate_config_data(data: Any, base: Optional[RunConfig] = None) -> RunConfig:
    """Validate a decoded configuration document and merge it onto defaults.

    Args:
        data: Decoded JSON document
        base: Configuration providing the defaults (a fresh RunConfig if None)

    Returns:
        Merged configuration

    Raises:
        ConfigError: If the document is not an object, has unknown keys, or
            has values of the wrong shape
    """
    base = base or RunConfig()
    if not isinstance(data, dict):
        raise ConfigError("no object")

    known = {f.name for f in fields(RunConfig)}
    overrides: Dict[str, Any] = {}

    for key, value in data.items():
        if value is None:
            continue
        if key not in known:
            raise ConfigError(f"forbidden key '{key}'")

        default = getattr(base, key)
        if isinstance(default, tuple):
            if not isinstance(value, list):
                raise ConfigError(f"key '{key}' must be an array")
            value = tuple(str(v) for v in value)
        elif isinstance(default, Mapping):
            if not isinstance(value, dict):
                raise ConfigError(f"key '{key}' must be an object")
            for sub_key, sub_value in value.items():
                if not isinstance(sub_value, str):
                    raise ConfigError(f"key '{sub_key}' in key '{key}' must be a string")
        elif isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"key '{key}' must be true or false")
        elif isinstance(default, str) and not isinstance(value, str):
            raise ConfigError(f"key '{key}' must be a string")

        overrides[key] = value

    level = str(overrides.get("minimum_level_for_logging", base.minimum_level_for_logging))
    if level.lower() not in LEVEL_NAMES:
        logger.warning(f"invalid minimum logging level '{level}' found; will use 'info'")
        overrides["minimum_level_for_logging"] = "info"

    return replace(base, **overrides)


def load_config(config_path: Optional[Path] = None) -> RunConfig:
    """Load the run configuration.

    Reads ``config_path`` (or ``backtrack.config`` in the working directory)
    if it exists. Any read or validation problem is logged and the default
    configuration is returned; a broken config file never aborts a run.

    Args:
        config_path: Explicit path to a JSON configuration file

    Returns:
        Effective configuration
    """
    path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    defaults = RunConfig()
    fallback = f"; will use default configuration values:\n{format_configuration(defaults)}"

    if not path.exists():
        logger.info(f"configuration file '{path}' not found{fallback}")
        return defaults

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"configuration file '{path}' not readable; {e}{fallback}")
        return defaults

    try:
        config = validate_config_data(json.loads(raw), defaults)
    except (json.JSONDecodeError, ConfigError) as e:
        logger.error(f"configuration file '{path}' does not contain a valid JSON object; {e}{fallback}")
        return defaults

    logger.info(f"will use data from configuration file '{path}':\n{format_configuration(config)}")
    return config
