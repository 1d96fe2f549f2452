"""
Module: grant_kernel.selectors.completion_selector
Responsibility: SQL side of the completion aggregator -- counts children by
    status for one application (milestones) or one program (applications)
    and hands the counts to the pure ``domain.completion`` rules.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Counts are computed inside the caller's transaction.  With
      ``lock=True`` the child rows are read FOR SHARE, so a concurrent
      status write on a child blocks until the caller's transaction ends.
      The service locks the parent row FOR UPDATE before calling this.
    - Excluded application statuses (rejected / deleted by default) are
      dropped from numerator and denominator.

Failure modes:
    - None of its own; an unknown parent id simply counts as 0 out of 0.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from grant_kernel.domain.completion import CompletionCount, count_from_breakdown
from grant_kernel.domain.statuses import ApplicationStatus, MilestoneStatus
from grant_kernel.models.application import Application
from grant_kernel.models.milestone import Milestone
from grant_kernel.selectors.base import BaseSelector

DEFAULT_PROGRAM_EXCLUDED = (ApplicationStatus.REJECTED, ApplicationStatus.DELETED)


class CompletionSelector(BaseSelector[Milestone]):
    """Completed-versus-total counts for gated 'complete' transitions."""

    def milestone_breakdown(
        self, application_id: UUID, lock: bool = False
    ) -> dict[MilestoneStatus, int]:
        """Milestone count per status for one application."""
        if lock:
            self.session.execute(
                select(Milestone.id)
                .where(Milestone.application_id == application_id)
                .with_for_update(read=True)
            ).all()
        rows = self.session.execute(
            select(Milestone.status, func.count(Milestone.id))
            .where(Milestone.application_id == application_id)
            .group_by(Milestone.status)
        ).all()
        return {status: n for status, n in rows}

    def application_breakdown(
        self, program_id: UUID, lock: bool = False
    ) -> dict[ApplicationStatus, int]:
        """Application count per status for one program."""
        if lock:
            self.session.execute(
                select(Application.id)
                .where(Application.program_id == program_id)
                .with_for_update(read=True)
            ).all()
        rows = self.session.execute(
            select(Application.status, func.count(Application.id))
            .where(Application.program_id == program_id)
            .group_by(Application.status)
        ).all()
        return {status: n for status, n in rows}

    def application_completion(
        self, application_id: UUID, lock: bool = False
    ) -> CompletionCount:
        """
        Milestones completed versus total for *application_id*.

        Zero milestones yields 0 out of 0, which is never "all completed".
        """
        return count_from_breakdown(
            self.milestone_breakdown(application_id, lock=lock),
            MilestoneStatus.COMPLETED,
        )

    def program_completion(
        self,
        program_id: UUID,
        excluded: Iterable[ApplicationStatus] = DEFAULT_PROGRAM_EXCLUDED,
        lock: bool = False,
    ) -> CompletionCount:
        """Live applications completed versus total for *program_id*."""
        return count_from_breakdown(
            self.application_breakdown(program_id, lock=lock),
            ApplicationStatus.COMPLETED,
            excluded=excluded,
        )
