"""
Module: grant_kernel.models.milestone
Responsibility: ORM persistence for milestones -- payout tranches under an
    application.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - status is restricted to draft / under_review / in_progress / completed.
    - payout_tx is set only once the milestone is completed
      (ck_milestone_payout_after_completed).
    - program_id is a denormalized copy of the application's program, kept
      so program-scoped queries need no join.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString
from grant_kernel.db.types import StrEnumType, TokenAmount, UTCDateTime, enum_check
from grant_kernel.domain.statuses import MilestoneStatus

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import MilestoneInfo
    from grant_kernel.models.application import Application


class Milestone(TrackedBase):
    """
    A deliverable and its payout.

    Contract:
        The sponsor defines it (draft / under_review), the applicant submits
        files while in_progress, the sponsor or relayer marks it completed,
        then the payout transaction hash is recorded.
    """

    __tablename__ = "milestones"

    __table_args__ = (
        enum_check("status", MilestoneStatus, "ck_milestone_status"),
        CheckConstraint(
            "payout_tx IS NULL OR status = 'completed'",
            name="ck_milestone_payout_after_completed",
        ),
        Index("idx_milestone_application_status", "application_id", "status"),
        Index("idx_milestone_program", "program_id"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    sponsor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payout: Mapped[Decimal] = mapped_column(TokenAmount(), nullable=False)
    deadline: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    files: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[MilestoneStatus] = mapped_column(
        StrEnumType(MilestoneStatus, 20),
        nullable=False,
        default=MilestoneStatus.DRAFT,
    )

    payout_tx: Mapped[str | None] = mapped_column(String(66), nullable=True)

    application: Mapped[Application] = relationship(back_populates="milestones")

    def to_dto(self) -> MilestoneInfo:
        """Convert ORM model to frozen DTO."""
        from grant_kernel.domain.dtos import MilestoneInfo

        return MilestoneInfo(
            id=self.id,
            application_id=self.application_id,
            program_id=self.program_id,
            sponsor_id=self.sponsor_id,
            title=self.title,
            description=self.description,
            payout=self.payout,
            deadline=self.deadline,
            files=tuple(self.files or ()),
            status=self.status,
            payout_tx=self.payout_tx,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<Milestone {self.id} status={self.status.value}>"
