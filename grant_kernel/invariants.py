"""
Lifecycle invariants of the grant kernel.

These rules are structural.  ``LifecyclePolicy`` may tune which application
statuses count toward program completion or whether review needs an
on-chain record, but never whether the rules below apply.

Enforcement is distributed across ``domain.lifecycle`` (transition table),
the services (row locks, guards) and database constraints.
"""

from enum import Enum, unique


@unique
class LifecycleInvariant(str, Enum):
    """Non-configurable guarantees of the lifecycle core."""

    APPLICATION_COMPLETION = "application_completion"
    """An application is completed only when every one of its milestones is
    completed, and it has at least one.  Enforced by the ``complete`` edge
    check and ``CompletionSelector`` under a row lock."""

    PROGRAM_COMPLETION = "program_completion"
    """A program closed through ``complete`` has every live application
    completed, unless an admin override is logged.  Enforced the same way
    over applications."""

    TERMINAL_STATES = "terminal_states"
    """closed (program), completed / rejected / deleted (application) and
    completed (milestone) have no outgoing transitions."""

    GUARDS_FIRST = "guards_first"
    """Authorization is resolved before any business rule is evaluated, so
    a Forbidden response never depends on entity state."""

    PAYOUT_AFTER_COMPLETION = "payout_after_completion"
    """A milestone's payout transaction is set only once it is completed.
    Enforced by ``EDIT_RULES`` and a database check constraint."""

    FLUSH_NOT_COMMIT = "flush_not_commit"
    """Services flush inside the caller's transaction and never commit, so
    each operation is all-or-nothing."""


ALL_LIFECYCLE_INVARIANTS: frozenset[LifecycleInvariant] = frozenset(LifecycleInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_import_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = ("grant_config",)

# The pure domain layer may not import from these kernel subpackages.
FORBIDDEN_DOMAIN_IMPORTS: tuple[str, ...] = (
    "grant_kernel.db",
    "grant_kernel.models",
    "grant_kernel.services",
    "grant_kernel.selectors",
    "sqlalchemy",
)
