"""
Settings schema (``grant_config.schema``).

Frozen dataclasses produced by ``grant_config.loader``.  Nothing here reads
files or the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30


@dataclass(frozen=True)
class LifecycleSettings:
    """Inputs to the kernel's ``LifecyclePolicy`` (see ``bridges``)."""

    program_completion_excluded_statuses: tuple[str, ...] = ("rejected", "deleted")
    require_onchain_program_for_review: bool = True
    allow_admin_completion_override: bool = True


@dataclass(frozen=True)
class PaginationSettings:
    default_page_size: int = 10
    max_page_size: int = 100


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class GrantSettings:
    """Complete runtime settings."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str | None = None
