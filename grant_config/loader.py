"""
Settings loader (``grant_config.loader``).

Responsibility
--------------
Reads the YAML settings file and turns each section into its frozen
``grant_config.schema`` dataclass.  Internal tooling: runtime callers go
through ``grant_config.get_settings()``.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or bad value in a section  -> ``ValueError``.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from grant_config.schema import (
    DatabaseSettings,
    GrantSettings,
    LifecycleSettings,
    LoggingSettings,
    PaginationSettings,
)

_VALID_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _section(cls, data: dict[str, Any] | None, name: str):
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"Section {name!r} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(
            f"Unknown keys in section {name!r}: {', '.join(sorted(unknown))}"
        )
    return cls(**data)


def parse_database(data: dict[str, Any] | None) -> DatabaseSettings:
    settings = _section(DatabaseSettings, data, "database")
    if settings.pool_size < 1:
        raise ValueError("database.pool_size must be at least 1")
    return settings


def parse_lifecycle(data: dict[str, Any] | None) -> LifecycleSettings:
    data = dict(data or {})
    if "program_completion_excluded_statuses" in data:
        data["program_completion_excluded_statuses"] = tuple(
            data["program_completion_excluded_statuses"] or ()
        )
    return _section(LifecycleSettings, data, "lifecycle")


def parse_pagination(data: dict[str, Any] | None) -> PaginationSettings:
    settings = _section(PaginationSettings, data, "pagination")
    if not 1 <= settings.default_page_size <= settings.max_page_size:
        raise ValueError(
            "pagination.default_page_size must be between 1 and max_page_size"
        )
    return settings


def parse_logging(data: dict[str, Any] | None) -> LoggingSettings:
    settings = _section(LoggingSettings, data, "logging")
    level = str(settings.level).upper()
    if level not in _VALID_LOG_LEVELS:
        raise ValueError(f"logging.level {settings.level!r} is not a log level")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any], source: str | None = None) -> GrantSettings:
    """Build ``GrantSettings`` from an already loaded mapping."""
    unknown = set(data) - {"database", "lifecycle", "pagination", "logging"}
    if unknown:
        raise ValueError(f"Unknown settings sections: {', '.join(sorted(unknown))}")
    return GrantSettings(
        database=parse_database(data.get("database")),
        lifecycle=parse_lifecycle(data.get("lifecycle")),
        pagination=parse_pagination(data.get("pagination")),
        logging=parse_logging(data.get("logging")),
        source=source,
    )
