"""
ApplicationService -- builder applications against open programs.

Responsibility:
    Creates applications, applies sponsor review decisions, and moves an
    application to ``completed`` once every milestone is completed.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Applications are only accepted while the program is open.
    - ``completed`` is reachable only when every milestone of the
      application is completed; zero milestones never completes.
    - Completion reads the milestone counts FOR SHARE after locking the
      application FOR UPDATE, inside the caller's transaction.
    - Completing an already completed application is a no-op.
    - Review, pick and chatroom belong to the program sponsor; withdraw,
      delete and complete belong to the applicant.

Failure modes:
    - UnauthorizedActionError for every other actor, whatever the status.
    - IncompleteChildrenError, e.g. "1 out of 2 milestones completed".
    - MissingRejectedReasonError when rejecting without a reason.
"""

from typing import Any
from uuid import UUID, uuid4

from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.dtos import ApplicationInfo
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.lifecycle import (
    TransitionCheck,
    TransitionContext,
    check_edit,
    required_checks,
)
from grant_kernel.domain.statuses import (
    ApplicationStatus,
    EntityKind,
    NotificationAction,
    NotificationType,
    ProgramStatus,
)
from grant_kernel.exceptions import (
    ApplicationNotFoundError,
    FieldNotEditableError,
    InvalidStatusError,
    ProgramNotAcceptingApplicationsError,
    ProgramNotFoundError,
)
from grant_kernel.logging_config import LogContext, get_logger
from grant_kernel.models.application import Application
from grant_kernel.models.program import Program
from grant_kernel.selectors.completion_selector import CompletionSelector
from grant_kernel.services.base import BaseService

logger = get_logger("services.application")

REVIEW_TARGETS = (
    ApplicationStatus.PENDING_SIGNATURE,
    ApplicationStatus.IN_PROGRESS,
    ApplicationStatus.REJECTED,
)

UNPICKABLE_STATUSES = frozenset(
    {ApplicationStatus.REJECTED, ApplicationStatus.DELETED}
)

SPONSOR_ONLY = frozenset({ActorRelation.COUNTERPARTY})
APPLICANT_ONLY = frozenset({ActorRelation.OWNER})


class ApplicationService(BaseService[Application]):
    """Application writes.  All public methods return frozen DTOs."""

    def __init__(self, session, publisher=None, clock=None, policy=None):
        super().__init__(session, publisher, clock, policy)
        self.completion = CompletionSelector(session)

    def create_application(
        self,
        actor: Actor | None,
        program_id: UUID,
        content: str | None = None,
        title: str | None = None,
    ) -> ApplicationInfo:
        """
        Submit an application to an open program.

        Raises:
            NotAuthorizedError: anonymous actor.
            ProgramNotFoundError: unknown program.
            ProgramNotAcceptingApplicationsError: program is not open.
        """
        actor = self.guard.require_authenticated(actor)
        program = self._load_for_update(Program, program_id, read=True)
        if program is None:
            raise ProgramNotFoundError(str(program_id))
        if program.status != ProgramStatus.OPEN:
            raise ProgramNotAcceptingApplicationsError(
                str(program.id), program.status.value
            )

        application = Application(
            program_id=program.id,
            applicant_id=actor.user_id,
            title=title,
            content=content or "",
        )
        self.session.add(application)
        self.session.flush()

        logger.info(
            "application_created",
            extra={
                "application_id": str(application.id),
                "program_id": str(program.id),
                "applicant_id": str(actor.user_id),
            },
        )
        self._notify(
            application,
            recipient_id=program.sponsor_id,
            sender_id=actor.user_id,
            action=NotificationAction.SUBMITTED,
            title="New Application Received",
            content=f"New Application for {program.title}",
        )
        return application.to_dto()

    def update_application(
        self, actor: Actor | None, application_id: UUID, **changes: Any
    ) -> ApplicationInfo:
        """Edit title or content while the application is still submitted."""
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "update")
        if changes:
            check_edit(EntityKind.APPLICATION, application.status, tuple(changes), relation)
        else:
            self.guard.require(relation, APPLICANT_ONLY, "update", "application")

        for name, value in changes.items():
            setattr(application, name, value)
        application.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "application_updated",
            extra={"application_id": str(application.id), "fields": sorted(changes)},
        )
        return application.to_dto()

    def review_application(
        self,
        actor: Actor | None,
        application_id: UUID,
        status: ApplicationStatus | str,
        rejected_reason: str | None = None,
    ) -> ApplicationInfo:
        """
        Apply the sponsor's review decision.

        ``pending_signature`` accepts, ``in_progress`` starts the work after
        signing, ``rejected`` needs a non-empty *rejected_reason*.
        """
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "review")
        self.guard.require(relation, SPONSOR_ONLY, "review", "application")
        if status not in REVIEW_TARGETS:
            raise InvalidStatusError(
                "application", str(status), tuple(s.value for s in REVIEW_TARGETS)
            )
        return self._apply_status(
            actor,
            application,
            relation,
            status,
            rejected_reason=rejected_reason,
            expected_action="review",
        )

    def change_status(
        self,
        actor: Actor | None,
        application_id: UUID,
        status: ApplicationStatus | str,
        rejected_reason: str | None = None,
    ) -> ApplicationInfo:
        """Generic status change; the lifecycle table decides who may do what."""
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "update")
        return self._apply_status(
            actor, application, relation, status, rejected_reason=rejected_reason
        )

    def withdraw_application(
        self, actor: Actor | None, application_id: UUID
    ) -> ApplicationInfo:
        """Applicant moves a submitted application to ``deleted``."""
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "withdraw")
        return self._apply_status(
            actor,
            application,
            relation,
            ApplicationStatus.DELETED,
            expected_action="withdraw",
        )

    def complete_application(
        self, actor: Actor | None, application_id: UUID
    ) -> ApplicationInfo:
        """
        Mark an in-progress application completed.

        Only the owning applicant may call this, and only once every
        milestone is completed.  Repeating the call on a completed
        application returns it unchanged.

        Raises:
            UnauthorizedActionError: actor is not the applicant.
            IncompleteChildrenError: "Cannot complete application: 1 out of
                2 milestones completed".
            TerminalStateError: application was rejected or deleted.
        """
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "complete")
        return self._apply_status(
            actor,
            application,
            relation,
            ApplicationStatus.COMPLETED,
            expected_action="complete",
        )

    def pick_application(
        self, actor: Actor | None, application_id: UUID, picked: bool = True
    ) -> ApplicationInfo:
        """Sponsor shortlisting flag.  Not allowed on rejected or deleted."""
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "pick")
        self.guard.require(relation, SPONSOR_ONLY, "pick", "application")
        if application.status in UNPICKABLE_STATUSES:
            raise FieldNotEditableError(
                "application", ("picked",), application.status.value
            )

        application.picked = bool(picked)
        application.updated_by_id = actor.user_id
        self.session.flush()
        logger.info(
            "application_picked",
            extra={"application_id": str(application.id), "picked": application.picked},
        )
        return application.to_dto()

    def assign_chatroom(
        self, actor: Actor | None, application_id: UUID
    ) -> ApplicationInfo:
        """Give the application a chatroom message id; keeps an existing one."""
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "update")
        self.guard.require(relation, SPONSOR_ONLY, "update", "application")
        if application.chatroom_message_id:
            return application.to_dto()

        application.chatroom_message_id = str(uuid4())
        self.session.flush()
        logger.info(
            "application_chatroom_assigned",
            extra={
                "application_id": str(application.id),
                "chatroom_message_id": application.chatroom_message_id,
            },
        )
        return application.to_dto()

    def delete_application(self, actor: Actor | None, application_id: UUID) -> None:
        """
        Hard-delete an application.  Owning applicant only.

        Milestones and the contract cascade; the program stays.
        """
        actor = self.guard.require_authenticated(actor)
        application, relation = self._load(actor, application_id, "delete")
        self.guard.require(relation, APPLICANT_ONLY, "delete", "application")

        program_id = application.program_id
        self.session.delete(application)
        self.session.flush()
        logger.info(
            "application_deleted",
            extra={"application_id": str(application_id), "program_id": str(program_id)},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(
        self, actor: Actor, application_id: UUID, action: str
    ) -> tuple[Application, ActorRelation]:
        application = self._load_for_update(Application, application_id)
        if application is None:
            self.guard.deny_missing(
                actor,
                action,
                "application",
                ApplicationNotFoundError(str(application_id)),
            )
        return application, self.guard.relation_to_application(actor, application)

    def _apply_status(
        self,
        actor: Actor,
        application: Application,
        relation: ActorRelation,
        status: ApplicationStatus | str,
        rejected_reason: str | None = None,
        expected_action: str | None = None,
    ) -> ApplicationInfo:
        with LogContext.bind(
            actor_id=actor.user_id,
            entity_type="application",
            entity_id=application.id,
        ):
            checks = required_checks(
                EntityKind.APPLICATION, application.status, status, relation
            )
            completion = None
            if TransitionCheck.ALL_CHILDREN_COMPLETED in checks:
                completion = self.completion.application_completion(
                    application.id, lock=True
                )
            decision = self._decide(
                EntityKind.APPLICATION,
                application.status,
                status,
                relation,
                TransitionContext(
                    completion=completion, rejected_reason=rejected_reason
                ),
                expected_action=expected_action,
            )
            if decision.noop:
                return application.to_dto()

            previous = application.status
            application.status = decision.requested
            if decision.requested == ApplicationStatus.REJECTED:
                application.rejected_reason = rejected_reason.strip()
            application.updated_by_id = actor.user_id
            self.session.flush()

            event = (
                "application_completed"
                if decision.requested == ApplicationStatus.COMPLETED
                else "application_status_changed"
            )
            logger.info(
                event,
                extra={
                    "application_id": str(application.id),
                    "from_status": previous.value,
                    "to_status": application.status.value,
                    "action": decision.action,
                    "milestones_completed": completion.completed if completion else None,
                },
            )
            self._notify_status(application, actor)
        return application.to_dto()

    def _notify_status(self, application: Application, actor: Actor) -> None:
        program = application.program
        status = application.status
        if status == ApplicationStatus.PENDING_SIGNATURE:
            self._notify(
                application,
                recipient_id=application.applicant_id,
                sender_id=actor.user_id,
                action=NotificationAction.ACCEPTED,
                title="Application Accepted",
                content=f"Your application for {program.title} has been accepted",
            )
        elif status == ApplicationStatus.REJECTED:
            self._notify(
                application,
                recipient_id=application.applicant_id,
                sender_id=actor.user_id,
                action=NotificationAction.REJECTED,
                title="Application Rejected",
                content=f"Your application for {program.title} has been rejected",
            )
        elif status == ApplicationStatus.COMPLETED:
            self._notify(
                application,
                recipient_id=program.sponsor_id,
                sender_id=actor.user_id,
                action=NotificationAction.COMPLETED,
                title="Application Completed",
                content=f"An application for {program.title} has been completed",
            )

    def _notify(
        self,
        application: Application,
        recipient_id: UUID,
        sender_id: UUID,
        action: NotificationAction,
        title: str,
        content: str,
    ) -> None:
        self._publish(
            NotificationEvent(
                type=NotificationType.APPLICATION,
                action=action,
                recipient_id=recipient_id,
                sender_id=sender_id,
                entity_id=application.id,
                title=title,
                content=content,
                metadata={"program_id": str(application.program_id)},
            )
        )
