"""
Config -> Kernel bridges.

Functions that convert settings into kernel inputs.  They live here, in
the producer, because the kernel must NEVER import grant_config.

Usage:
    from grant_config import get_settings
    from grant_config.bridges import init_engine, to_lifecycle_policy

    settings = get_settings()
    init_engine(settings)
    policy = to_lifecycle_policy(settings)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from grant_config.schema import GrantSettings
from grant_kernel.db.engine import init_engine_from_url
from grant_kernel.domain.policy import LifecyclePolicy
from grant_kernel.domain.statuses import ApplicationStatus
from grant_kernel.logging_config import configure_logging


def to_lifecycle_policy(settings: GrantSettings) -> LifecyclePolicy:
    """
    Build the kernel's ``LifecyclePolicy`` from the lifecycle section.

    Raises:
        ValueError: an excluded status is not an application status.
    """
    lifecycle = settings.lifecycle
    excluded = frozenset(
        ApplicationStatus(value)
        for value in lifecycle.program_completion_excluded_statuses
    )
    if ApplicationStatus.COMPLETED in excluded:
        raise ValueError("completed applications cannot be excluded from completion")
    return LifecyclePolicy(
        program_completion_excluded=excluded,
        require_onchain_program_for_review=lifecycle.require_onchain_program_for_review,
        allow_admin_completion_override=lifecycle.allow_admin_completion_override,
    )


def selector_options(settings: GrantSettings) -> dict[str, int]:
    """Keyword arguments for ``BaseSelector`` subclasses."""
    return {
        "default_page_size": settings.pagination.default_page_size,
        "max_page_size": settings.pagination.max_page_size,
    }


def init_engine(settings: GrantSettings) -> Engine:
    """Configure logging, then the module engine, from *settings*."""
    configure_logging(level=settings.logging.level)
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
