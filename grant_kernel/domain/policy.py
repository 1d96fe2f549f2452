"""
LifecyclePolicy -- tunable knobs of the lifecycle rules.

Built by ``grant_config`` from the settings file; the kernel never reads
configuration itself.  Defaults are the production behavior.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from grant_kernel.domain.statuses import ApplicationStatus


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    Contract:
        program_completion_excluded -- application statuses dropped from the
            program-completion numerator and denominator.
        require_onchain_program_for_review -- draft -> under_review needs an
            OnchainProgramInfo row.
        allow_admin_completion_override -- an admin may close an open program
            whose applications are not all completed.
    """

    program_completion_excluded: frozenset[ApplicationStatus] = field(
        default_factory=lambda: frozenset(
            {ApplicationStatus.REJECTED, ApplicationStatus.DELETED}
        )
    )
    require_onchain_program_for_review: bool = True
    allow_admin_completion_override: bool = True


DEFAULT_POLICY = LifecyclePolicy()
