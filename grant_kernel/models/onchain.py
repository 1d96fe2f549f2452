"""
Module: grant_kernel.models.onchain
Responsibility: ORM persistence for on-chain evidence -- the deployed
    program object and the deployed per-builder contract objects, with the
    transaction hash that created or last changed them.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - At most one OnchainProgramInfo per program (uq_onchain_program_info_program).
    - status is one of active / paused / completed / cancelled / updated.
    - tx is 0x + 64 hex (validated in the service).
    - Both records cascade-delete with their program.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString
from grant_kernel.db.types import StrEnumType, enum_check
from grant_kernel.domain.statuses import OnchainStatus

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import OnchainContractRecord, OnchainProgramRecord
    from grant_kernel.models.program import Program


class OnchainProgramInfo(TrackedBase):
    """The program object deployed on chain."""

    __tablename__ = "onchain_program_info"

    __table_args__ = (
        UniqueConstraint("program_id", name="uq_onchain_program_info_program"),
        enum_check("status", OnchainStatus, "ck_onchain_program_info_status"),
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    network_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("networks.id", ondelete="CASCADE"),
        nullable=False,
    )
    smart_contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("smart_contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    onchain_program_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[OnchainStatus] = mapped_column(
        StrEnumType(OnchainStatus, 20),
        nullable=False,
        default=OnchainStatus.ACTIVE,
    )
    tx: Mapped[str] = mapped_column(String(66), nullable=False)

    program: Mapped[Program] = relationship(back_populates="onchain_info")

    def to_dto(self) -> OnchainProgramRecord:
        from grant_kernel.domain.dtos import OnchainProgramRecord

        return OnchainProgramRecord(
            id=self.id,
            program_id=self.program_id,
            network_id=self.network_id,
            smart_contract_id=self.smart_contract_id,
            onchain_program_id=self.onchain_program_id,
            status=self.status,
            tx=self.tx,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<OnchainProgramInfo program={self.program_id} "
            f"onchain_id={self.onchain_program_id} status={self.status.value}>"
        )


class OnchainContractInfo(TrackedBase):
    """A sponsor/builder contract object deployed on chain."""

    __tablename__ = "onchain_contract_info"

    __table_args__ = (
        enum_check("status", OnchainStatus, "ck_onchain_contract_info_status"),
        Index("idx_onchain_contract_program", "program_id"),
        Index("idx_onchain_contract_application", "application_id"),
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    application_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=True,
    )
    sponsor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    applicant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    smart_contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("smart_contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    onchain_contract_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[OnchainStatus] = mapped_column(
        StrEnumType(OnchainStatus, 20),
        nullable=False,
        default=OnchainStatus.ACTIVE,
    )
    tx: Mapped[str] = mapped_column(String(66), nullable=False)

    def to_dto(self) -> OnchainContractRecord:
        from grant_kernel.domain.dtos import OnchainContractRecord

        return OnchainContractRecord(
            id=self.id,
            program_id=self.program_id,
            application_id=self.application_id,
            sponsor_id=self.sponsor_id,
            applicant_id=self.applicant_id,
            smart_contract_id=self.smart_contract_id,
            onchain_contract_id=self.onchain_contract_id,
            status=self.status,
            tx=self.tx,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<OnchainContractInfo onchain_id={self.onchain_contract_id} "
            f"status={self.status.value}>"
        )
