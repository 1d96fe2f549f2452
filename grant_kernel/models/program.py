"""
Module: grant_kernel.models.program
Responsibility: ORM persistence for programs -- funding/recruitment
    opportunities posted by a sponsor.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.  Status changes are decided by
    domain/lifecycle.py and applied by services/program_service.py; this
    model never validates transitions itself.

Invariants enforced:
    - status is one of draft / under_review / open / closed (ck_program_status).
    - Applications and the on-chain program record cascade-delete with the
      program (DB ON DELETE CASCADE plus ORM delete-orphan).
    - price is a decimal string (TokenAmount), never a float.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString
from grant_kernel.db.types import StrEnumType, TokenAmount, UTCDateTime, enum_check
from grant_kernel.domain.statuses import ProgramStatus, ProgramVisibility

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import ProgramInfo
    from grant_kernel.models.application import Application
    from grant_kernel.models.onchain import OnchainProgramInfo


class Program(TrackedBase):
    """
    A program posted by a sponsor.

    Contract:
        draft -> under_review -> open -> closed.  ``closed`` is terminal.
        Builders may apply only while the program is open.
    """

    __tablename__ = "programs"

    __table_args__ = (
        enum_check("status", ProgramStatus, "ck_program_status"),
        enum_check("visibility", ProgramVisibility, "ck_program_visibility"),
        Index("idx_program_sponsor", "sponsor_id"),
        Index("idx_program_status", "status"),
    )

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    skills: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    deadline: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    invited_members: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=list
    )

    visibility: Mapped[ProgramVisibility] = mapped_column(
        StrEnumType(ProgramVisibility, 20),
        nullable=False,
        default=ProgramVisibility.PUBLIC,
    )

    status: Mapped[ProgramStatus] = mapped_column(
        StrEnumType(ProgramStatus, 20),
        nullable=False,
        default=ProgramStatus.DRAFT,
    )

    sponsor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    network_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("networks.id", ondelete="SET NULL"),
        nullable=True,
    )
    token_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tokens.id", ondelete="SET NULL"),
        nullable=True,
    )
    price: Mapped[Decimal | None] = mapped_column(TokenAmount(), nullable=True)

    applications: Mapped[list[Application]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    onchain_info: Mapped[OnchainProgramInfo | None] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    @property
    def is_open(self) -> bool:
        return self.status == ProgramStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == ProgramStatus.CLOSED

    def to_dto(self) -> ProgramInfo:
        """Convert ORM model to frozen DTO."""
        from grant_kernel.domain.dtos import ProgramInfo

        return ProgramInfo(
            id=self.id,
            title=self.title,
            description=self.description,
            skills=tuple(self.skills or ()),
            deadline=self.deadline,
            invited_members=tuple(self.invited_members or ()),
            visibility=self.visibility,
            status=self.status,
            sponsor_id=self.sponsor_id,
            network_id=self.network_id,
            token_id=self.token_id,
            price=self.price,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<Program {self.id} {self.title!r} status={self.status.value}>"
