"""
Module: grant_kernel.selectors.milestone_selector
Responsibility: Read queries for milestones.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.domain.dtos import MilestoneInfo, Page
from grant_kernel.domain.statuses import MilestoneStatus
from grant_kernel.exceptions import MilestoneNotFoundError
from grant_kernel.models.milestone import Milestone
from grant_kernel.selectors.base import BaseSelector


class MilestoneSelector(BaseSelector[Milestone]):
    """Read-only milestone queries."""

    def get_by_id(self, milestone_id: UUID) -> MilestoneInfo:
        """
        Raises:
            MilestoneNotFoundError: No milestone with this id.
        """
        milestone = self.session.get(Milestone, milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(str(milestone_id))
        return milestone.to_dto()

    def list_milestones(
        self,
        page: int = 1,
        limit: int | None = None,
        program_id: UUID | None = None,
        application_id: UUID | None = None,
        status: MilestoneStatus | None = None,
    ) -> Page[MilestoneInfo]:
        stmt = select(Milestone)
        if program_id is not None:
            stmt = stmt.where(Milestone.program_id == program_id)
        if application_id is not None:
            stmt = stmt.where(Milestone.application_id == application_id)
        if status is not None:
            stmt = stmt.where(Milestone.status == status)
        # Milestones are listed in delivery order
        stmt = stmt.order_by(
            Milestone.deadline.asc().nulls_last(),
            Milestone.created_at.asc(),
            Milestone.id,
        )
        return self._paginate(stmt, Milestone.to_dto, page, limit)

    def list_in_progress(
        self,
        page: int = 1,
        limit: int | None = None,
        program_id: UUID | None = None,
    ) -> Page[MilestoneInfo]:
        """Milestones awaiting completion, e.g. for the payout relayer."""
        return self.list_milestones(
            page=page,
            limit=limit,
            program_id=program_id,
            status=MilestoneStatus.IN_PROGRESS,
        )
