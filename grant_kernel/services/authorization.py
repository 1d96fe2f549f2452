"""
AuthorizationGuard -- resolves how an actor relates to an entity.

Responsibility:
    Answers is-sponsor / is-applicant / is-admin questions and turns them
    into an ``ActorRelation`` for the lifecycle validator.  Every mutating
    service operation consults the guard before any business rule runs.

Architecture position:
    Kernel > Services.  Reads the session; never writes.

Invariants enforced:
    - No actor -> NotAuthorizedError("Not authorized") before any lookup.
    - Unknown entities resolve to STRANGER; callers turn that into
      Forbidden for non-admins, so existence is never revealed.
    - Ownership wins over role: an admin who sponsors a program is its
      OWNER, not ADMIN.
    - Roles are read from the users table.  ``Actor.role`` is the token
      claim and is never trusted for a decision.
"""

from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.statuses import UserRole
from grant_kernel.exceptions import (
    NotAuthorizedError,
    NotFoundError,
    UnauthorizedActionError,
)
from grant_kernel.models.application import Application
from grant_kernel.models.milestone import Milestone
from grant_kernel.models.program import Program
from grant_kernel.models.user import User


class AuthorizationGuard:
    """Role and ownership predicates over the store."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def require_authenticated(actor: Actor | None) -> Actor:
        """
        Raises:
            NotAuthorizedError: *actor* is None.
        """
        if actor is None:
            raise NotAuthorizedError()
        return actor

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def is_admin(self, user_id: UUID) -> bool:
        return self._has_role(user_id, UserRole.ADMIN)

    def is_relayer(self, user_id: UUID) -> bool:
        return self._has_role(user_id, UserRole.RELAYER)

    def is_sponsor_of(self, user_id: UUID, program_id: UUID) -> bool:
        return self.session.execute(
            select(
                exists().where(
                    Program.id == program_id,
                    Program.sponsor_id == user_id,
                )
            )
        ).scalar_one()

    def is_applicant_of(self, user_id: UUID, application_id: UUID) -> bool:
        return self.session.execute(
            select(
                exists().where(
                    Application.id == application_id,
                    Application.applicant_id == user_id,
                )
            )
        ).scalar_one()

    def stored_role(self, user_id: UUID) -> UserRole | None:
        """Role recorded for *user_id*; None for an unknown user."""
        return self.session.execute(
            select(User.role).where(User.id == user_id)
        ).scalar_one_or_none()

    def _has_role(self, user_id: UUID, role: UserRole) -> bool:
        return self.stored_role(user_id) == role

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def relation_to_program(
        self, actor: Actor, program: Program | None
    ) -> ActorRelation:
        if program is None:
            return ActorRelation.STRANGER
        if program.sponsor_id == actor.user_id:
            return ActorRelation.OWNER
        return self._role_relation(actor)

    def relation_to_application(
        self, actor: Actor, application: Application | None
    ) -> ActorRelation:
        if application is None:
            return ActorRelation.STRANGER
        if application.applicant_id == actor.user_id:
            return ActorRelation.OWNER
        if application.program.sponsor_id == actor.user_id:
            return ActorRelation.COUNTERPARTY
        return self._role_relation(actor)

    def relation_to_milestone(
        self, actor: Actor, milestone: Milestone | None
    ) -> ActorRelation:
        if milestone is None:
            return ActorRelation.STRANGER
        if milestone.sponsor_id == actor.user_id:
            return ActorRelation.OWNER
        if milestone.application.applicant_id == actor.user_id:
            return ActorRelation.COUNTERPARTY
        return self._role_relation(actor)

    def _role_relation(self, actor: Actor) -> ActorRelation:
        role = self.stored_role(actor.user_id)
        if role == UserRole.ADMIN:
            return ActorRelation.ADMIN
        if role == UserRole.RELAYER:
            return ActorRelation.RELAYER
        return ActorRelation.STRANGER

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    @staticmethod
    def require(
        relation: ActorRelation,
        allowed: set[ActorRelation] | frozenset[ActorRelation],
        action: str,
        entity_type: str,
    ) -> None:
        """
        Raises:
            UnauthorizedActionError: *relation* not in *allowed*.
        """
        if relation not in allowed:
            raise UnauthorizedActionError(action, entity_type)

    def deny_missing(
        self,
        actor: Actor,
        action: str,
        entity_type: str,
        not_found: NotFoundError,
    ) -> None:
        """
        Fail a guarded mutation whose target id does not resolve.

        Admins learn the id is unknown; everyone else gets the same
        Forbidden they would get for an entity they do not own.
        """
        if self.is_admin(actor.user_id):
            raise not_found
        raise UnauthorizedActionError(action, entity_type)

    def require_admin(self, actor: Actor, action: str, entity_type: str) -> None:
        """
        Raise unless the stored role of *actor* is admin.

        Raises:
            UnauthorizedActionError: the user is not an admin in the store.
        """
        if not self.is_admin(actor.user_id):
            raise UnauthorizedActionError(action, entity_type)
