"""
grant_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_settings()`` is the ONLY place that reads settings files or
    environment variables.  It returns a frozen ``GrantSettings``; the
    bridges in ``grant_config.bridges`` turn that into kernel inputs.

Architecture position:
    Configuration.  Sits above ``grant_kernel``; the kernel MUST NEVER
    import from ``grant_config``.

Resolution order:
    1. *path* argument, else ``GRANT_CONFIG_FILE``, else the packaged
       ``settings.yaml``.
    2. ``DATABASE_URL`` overrides ``database.url``.
    3. ``GRANT_LOG_LEVEL`` overrides ``logging.level``.

Failure modes:
    - ``FileNotFoundError`` -- the selected settings file does not exist.
    - ``ValueError`` -- unknown section or key, or an invalid value.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from grant_config.loader import load_yaml_file, parse_logging, parse_settings
from grant_config.schema import (
    DatabaseSettings,
    GrantSettings,
    LifecycleSettings,
    LoggingSettings,
    PaginationSettings,
)

_logger = logging.getLogger("grant_kernel.config")

DEFAULT_SETTINGS_FILE = Path(__file__).parent / "settings.yaml"

CONFIG_FILE_ENV = "GRANT_CONFIG_FILE"
DATABASE_URL_ENV = "DATABASE_URL"
LOG_LEVEL_ENV = "GRANT_LOG_LEVEL"


def get_settings(path: Path | str | None = None) -> GrantSettings:
    """
    The ONLY public settings entrypoint.

    Args:
        path: Settings file; overrides ``GRANT_CONFIG_FILE``.

    Returns:
        Frozen ``GrantSettings`` with environment overrides applied.
    """
    source = Path(path or os.environ.get(CONFIG_FILE_ENV) or DEFAULT_SETTINGS_FILE)
    settings = parse_settings(load_yaml_file(source), source=str(source))

    overrides: list[str] = []
    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = dataclasses.replace(
            settings,
            database=dataclasses.replace(settings.database, url=database_url),
        )
        overrides.append(DATABASE_URL_ENV)
    log_level = os.environ.get(LOG_LEVEL_ENV)
    if log_level:
        settings = dataclasses.replace(
            settings, logging=parse_logging({"level": log_level})
        )
        overrides.append(LOG_LEVEL_ENV)

    _logger.info(
        "settings_loaded",
        extra={
            "source": str(source),
            "overrides": overrides,
            "dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "GrantSettings",
    "LifecycleSettings",
    "LoggingSettings",
    "PaginationSettings",
    "get_settings",
]
