"""
Module: grant_kernel.selectors.application_selector
Responsibility: Read queries for applications, including the
    sponsor-versus-builder view of a program's applications.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - list_for_program: the program's sponsor and users whose stored role
      is admin see every application; any other actor sees only their own.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.domain.actor import Actor
from grant_kernel.domain.dtos import ApplicationInfo, Page
from grant_kernel.domain.statuses import ApplicationStatus, UserRole
from grant_kernel.exceptions import ApplicationNotFoundError, ProgramNotFoundError
from grant_kernel.models.application import Application
from grant_kernel.models.program import Program
from grant_kernel.models.user import User
from grant_kernel.selectors.base import BaseSelector


class ApplicationSelector(BaseSelector[Application]):
    """Read-only application queries."""

    def get_by_id(self, application_id: UUID) -> ApplicationInfo:
        """
        Raises:
            ApplicationNotFoundError: No application with this id.
        """
        application = self.session.get(Application, application_id)
        if application is None:
            raise ApplicationNotFoundError(str(application_id))
        return application.to_dto()

    def list_applications(
        self,
        page: int = 1,
        limit: int | None = None,
        program_id: UUID | None = None,
        applicant_id: UUID | None = None,
        status: ApplicationStatus | None = None,
        picked: bool | None = None,
    ) -> Page[ApplicationInfo]:
        stmt = select(Application)
        if program_id is not None:
            stmt = stmt.where(Application.program_id == program_id)
        if applicant_id is not None:
            stmt = stmt.where(Application.applicant_id == applicant_id)
        if status is not None:
            stmt = stmt.where(Application.status == status)
        if picked is not None:
            stmt = stmt.where(Application.picked == picked)
        stmt = stmt.order_by(Application.created_at.desc(), Application.id)
        return self._paginate(stmt, Application.to_dto, page, limit)

    def list_for_program(
        self,
        actor: Actor,
        program_id: UUID,
        page: int = 1,
        limit: int | None = None,
        status: ApplicationStatus | None = None,
    ) -> Page[ApplicationInfo]:
        """
        Applications of one program as seen by *actor*.

        Raises:
            ProgramNotFoundError: No program with this id.
        """
        program = self.session.get(Program, program_id)
        if program is None:
            raise ProgramNotFoundError(str(program_id))

        sees_all = program.sponsor_id == actor.user_id or self._is_admin(actor)
        return self.list_applications(
            page=page,
            limit=limit,
            program_id=program_id,
            applicant_id=None if sees_all else actor.user_id,
            status=status,
        )

    def _is_admin(self, actor: Actor) -> bool:
        role = self.session.execute(
            select(User.role).where(User.id == actor.user_id)
        ).scalar_one_or_none()
        return role == UserRole.ADMIN

    def list_mine(
        self,
        actor: Actor,
        page: int = 1,
        limit: int | None = None,
        status: ApplicationStatus | None = None,
    ) -> Page[ApplicationInfo]:
        """Applications submitted by *actor*."""
        return self.list_applications(
            page=page, limit=limit, applicant_id=actor.user_id, status=status
        )
