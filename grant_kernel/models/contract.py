"""
Module: grant_kernel.models.contract
Responsibility: ORM persistence for off-chain contract snapshots between a
    sponsor and the builder of one application.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one contract per application (uq_contract_application).
    - snapshot_hash, when present, is 0x + 64 hex (validated in the service).
    - Cascade-deletes with its application and its program.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import ContractInfo
    from grant_kernel.models.application import Application


class Contract(TrackedBase):
    """
    Evidentiary record of the agreed terms.

    Contract:
        Append-mostly.  The builder signs once; the on-chain contract id is
        filled in after deployment.  Does not drive the application
        lifecycle.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint("application_id", name="uq_contract_application"),
        Index("idx_contract_program", "program_id"),
        Index("idx_contract_applicant", "applicant_id"),
        Index("idx_contract_sponsor", "sponsor_id"),
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
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

    onchain_contract_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    snapshot_contents: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    snapshot_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    builder_signature: Mapped[str | None] = mapped_column(String(512), nullable=True)

    application: Mapped[Application] = relationship(back_populates="contract")

    def to_dto(self) -> ContractInfo:
        from grant_kernel.domain.dtos import ContractInfo

        return ContractInfo(
            id=self.id,
            program_id=self.program_id,
            application_id=self.application_id,
            sponsor_id=self.sponsor_id,
            applicant_id=self.applicant_id,
            smart_contract_id=self.smart_contract_id,
            onchain_contract_id=self.onchain_contract_id,
            snapshot_contents=dict(self.snapshot_contents or {}),
            snapshot_hash=self.snapshot_hash,
            builder_signature=self.builder_signature,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Contract {self.id} application={self.application_id}>"
