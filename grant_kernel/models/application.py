"""
Module: grant_kernel.models.application
Responsibility: ORM persistence for applications -- a builder's submission
    against a program.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - status is restricted to the application status set (ck_application_status).
    - completed is reachable only when every milestone is completed; enforced
      by the lifecycle table plus the completion selector, not here.
    - chatroom_message_id is unique when set.
    - Milestones and the contract cascade-delete with the application; the
      parent program is never removed by an application delete.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString
from grant_kernel.db.types import StrEnumType, enum_check
from grant_kernel.domain.statuses import ApplicationStatus

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import ApplicationInfo
    from grant_kernel.models.contract import Contract
    from grant_kernel.models.milestone import Milestone
    from grant_kernel.models.program import Program


class Application(TrackedBase):
    """
    A builder's application to a program.

    Contract:
        submitted -> pending_signature -> in_progress -> completed, with
        rejected (sponsor, with reason) and deleted (applicant withdraw)
        side exits.  completed / rejected / deleted are terminal.
    """

    __tablename__ = "applications"

    __table_args__ = (
        enum_check("status", ApplicationStatus, "ck_application_status"),
        UniqueConstraint("chatroom_message_id", name="uq_application_chatroom"),
        Index("idx_application_program_status", "program_id", "status"),
        Index("idx_application_applicant", "applicant_id"),
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    applicant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        StrEnumType(ApplicationStatus, 20),
        nullable=False,
        default=ApplicationStatus.SUBMITTED,
    )

    title: Mapped[str | None] = mapped_column(String(256), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Sponsor shortlisting flag
    picked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    chatroom_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    program: Mapped[Program] = relationship(back_populates="applications")
    milestones: Mapped[list[Milestone]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    contract: Mapped[Contract | None] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    def to_dto(self) -> ApplicationInfo:
        """Convert ORM model to frozen DTO."""
        from grant_kernel.domain.dtos import ApplicationInfo

        return ApplicationInfo(
            id=self.id,
            program_id=self.program_id,
            applicant_id=self.applicant_id,
            status=self.status,
            title=self.title,
            content=self.content,
            rejected_reason=self.rejected_reason,
            picked=self.picked,
            chatroom_message_id=self.chatroom_message_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<Application {self.id} status={self.status.value}>"
