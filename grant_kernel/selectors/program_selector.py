"""
Module: grant_kernel.selectors.program_selector
Responsibility: Read queries for programs and their on-chain program record.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import exists, select

from grant_kernel.domain.dtos import OnchainProgramRecord, Page, ProgramInfo
from grant_kernel.domain.statuses import ProgramStatus, ProgramVisibility
from grant_kernel.exceptions import OnchainProgramInfoNotFoundError, ProgramNotFoundError
from grant_kernel.models.application import Application
from grant_kernel.models.onchain import OnchainProgramInfo
from grant_kernel.models.program import Program
from grant_kernel.selectors.base import BaseSelector


class ProgramSelector(BaseSelector[Program]):
    """Read-only program queries."""

    def get_by_id(self, program_id: UUID) -> ProgramInfo:
        """
        Raises:
            ProgramNotFoundError: No program with this id.
        """
        program = self.session.get(Program, program_id)
        if program is None:
            raise ProgramNotFoundError(str(program_id))
        return program.to_dto()

    def list_programs(
        self,
        page: int = 1,
        limit: int | None = None,
        status: ProgramStatus | None = None,
        sponsor_id: UUID | None = None,
        visibility: ProgramVisibility | None = None,
    ) -> Page[ProgramInfo]:
        """Newest first, optionally filtered."""
        stmt = select(Program)
        if status is not None:
            stmt = stmt.where(Program.status == status)
        if sponsor_id is not None:
            stmt = stmt.where(Program.sponsor_id == sponsor_id)
        if visibility is not None:
            stmt = stmt.where(Program.visibility == visibility)
        stmt = stmt.order_by(Program.created_at.desc(), Program.id)
        return self._paginate(stmt, Program.to_dto, page, limit)

    def list_applied_by(
        self,
        builder_id: UUID,
        page: int = 1,
        limit: int | None = None,
        status: ProgramStatus | None = None,
    ) -> Page[ProgramInfo]:
        """Programs the builder has at least one application to."""
        applied = exists().where(
            Application.program_id == Program.id,
            Application.applicant_id == builder_id,
        )
        stmt = select(Program).where(applied)
        if status is not None:
            stmt = stmt.where(Program.status == status)
        stmt = stmt.order_by(Program.created_at.desc(), Program.id)
        return self._paginate(stmt, Program.to_dto, page, limit)

    def has_onchain_record(self, program_id: UUID) -> bool:
        return self.session.execute(
            select(
                exists().where(OnchainProgramInfo.program_id == program_id)
            )
        ).scalar_one()

    def get_onchain_info(self, program_id: UUID) -> OnchainProgramRecord:
        """
        Raises:
            OnchainProgramInfoNotFoundError: Program has no on-chain record.
        """
        info = self.session.execute(
            select(OnchainProgramInfo).where(OnchainProgramInfo.program_id == program_id)
        ).scalar_one_or_none()
        if info is None:
            raise OnchainProgramInfoNotFoundError(str(program_id))
        return info.to_dto()
