"""
MilestoneService -- payout tranches under an application.

Responsibility:
    Sponsors define milestones and drive them draft -> under_review ->
    in_progress -> completed; applicants attach submission files; the
    sponsor or the relayer records the payout transaction.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - New milestones start as draft or under_review.
    - No milestone may be added to a completed, rejected or deleted
      application (it would break "completed => all milestones completed").
    - Definition fields are locked once work starts; files are only
      accepted while in progress; ``payout_tx`` only once completed.
    - Recording the same payout hash twice is a no-op; a different hash
      for an already paid milestone is rejected.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from grant_kernel.db.types import parse_amount, validate_hash
from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.dtos import MilestoneInfo
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.lifecycle import check_edit, is_terminal
from grant_kernel.domain.statuses import (
    EntityKind,
    MilestoneStatus,
    NotificationAction,
    NotificationType,
)
from grant_kernel.exceptions import (
    ApplicationNotFoundError,
    FieldNotEditableError,
    InvalidStatusError,
    InvalidTransitionError,
    MilestoneNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import LogContext, get_logger
from grant_kernel.models.application import Application
from grant_kernel.models.milestone import Milestone
from grant_kernel.services.base import BaseService

logger = get_logger("services.milestone")

INITIAL_STATUSES = (MilestoneStatus.DRAFT, MilestoneStatus.UNDER_REVIEW)
DELETABLE_STATUSES = (MilestoneStatus.DRAFT, MilestoneStatus.UNDER_REVIEW)
DEFINITION_FIELDS = frozenset({"title", "description", "payout", "deadline"})


class MilestoneService(BaseService[Milestone]):
    """Milestone writes.  All public methods return frozen DTOs."""

    def create_milestone(
        self,
        actor: Actor | None,
        application_id: UUID,
        title: str,
        payout: Decimal | str | int,
        description: str | None = None,
        deadline: datetime | None = None,
        files: list[str] | None = None,
        status: MilestoneStatus | str = MilestoneStatus.DRAFT,
    ) -> MilestoneInfo:
        """
        Add a milestone to an application.  Sponsor of the program only.

        The application row is locked so a concurrent completion cannot
        close it between the status check and the insert.

        Raises:
            UnauthorizedActionError: actor is not the program sponsor.
            InvalidStatusError: initial status other than draft/under_review.
            InvalidTransitionError: application is already terminal.
        """
        actor = self.guard.require_authenticated(actor)
        application = self._load_for_update(Application, application_id)
        if application is None:
            self.guard.deny_missing(
                actor, "create", "milestone", ApplicationNotFoundError(str(application_id))
            )
        relation = self.guard.relation_to_application(actor, application)
        self.guard.require(relation, {ActorRelation.COUNTERPARTY}, "create", "milestone")

        if status not in INITIAL_STATUSES:
            raise InvalidStatusError(
                "milestone", str(status), tuple(s.value for s in INITIAL_STATUSES)
            )
        if is_terminal(EntityKind.APPLICATION, application.status):
            raise InvalidTransitionError(
                "application",
                application.status.value,
                application.status.value,
                message=(
                    f"Cannot add milestones to a {application.status.value} application"
                ),
            )
        if not title or not title.strip():
            raise ValidationError("Milestone title is required")

        milestone = Milestone(
            application_id=application.id,
            program_id=application.program_id,
            sponsor_id=application.program.sponsor_id,
            title=title.strip(),
            description=description,
            payout=parse_amount(payout, "payout"),
            deadline=deadline,
            files=list(files or []),
            status=MilestoneStatus(status),
        )
        self.session.add(milestone)
        self.session.flush()

        logger.info(
            "milestone_created",
            extra={
                "milestone_id": str(milestone.id),
                "application_id": str(application.id),
                "status": milestone.status.value,
            },
        )
        if milestone.status == MilestoneStatus.UNDER_REVIEW:
            self._notify_published(milestone, application, actor)
        return milestone.to_dto()

    def update_milestone(
        self, actor: Actor | None, milestone_id: UUID, **changes: Any
    ) -> MilestoneInfo:
        """Edit definition fields while draft or under review."""
        actor = self.guard.require_authenticated(actor)
        milestone, relation = self._load(actor, milestone_id, "update")
        unknown = set(changes) - DEFINITION_FIELDS
        if unknown:
            # files and payout_tx have dedicated operations
            raise ValidationError(
                f"Unknown milestone fields: {', '.join(sorted(unknown))}"
            )
        if not changes:
            self.guard.require(relation, {ActorRelation.OWNER}, "update", "milestone")
            return milestone.to_dto()
        check_edit(EntityKind.MILESTONE, milestone.status, tuple(changes), relation)

        if "payout" in changes:
            changes["payout"] = parse_amount(changes["payout"], "payout")
        if "title" in changes:
            if not changes["title"] or not str(changes["title"]).strip():
                raise ValidationError("Milestone title is required")
            changes["title"] = str(changes["title"]).strip()
        for name, value in changes.items():
            setattr(milestone, name, value)
        milestone.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "milestone_updated",
            extra={"milestone_id": str(milestone.id), "fields": sorted(changes)},
        )
        return milestone.to_dto()

    def submit_files(
        self, actor: Actor | None, milestone_id: UUID, files: list[str]
    ) -> MilestoneInfo:
        """Applicant attaches deliverables while the milestone is in progress."""
        actor = self.guard.require_authenticated(actor)
        milestone, relation = self._load(actor, milestone_id, "update")
        check_edit(EntityKind.MILESTONE, milestone.status, ("files",), relation)

        milestone.files = list(files)
        milestone.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "milestone_files_submitted",
            extra={"milestone_id": str(milestone.id), "file_count": len(milestone.files)},
        )
        self._publish(
            NotificationEvent(
                type=NotificationType.MILESTONE,
                action=NotificationAction.SUBMITTED,
                recipient_id=milestone.sponsor_id,
                sender_id=actor.user_id,
                entity_id=milestone.id,
                title="Milestone Submitted",
                content=f"Files were submitted for milestone '{milestone.title}'",
                metadata=self._metadata(milestone),
            )
        )
        return milestone.to_dto()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def change_status(
        self,
        actor: Actor | None,
        milestone_id: UUID,
        status: MilestoneStatus | str,
        expected_action: str | None = None,
    ) -> MilestoneInfo:
        actor = self.guard.require_authenticated(actor)
        milestone, relation = self._load(
            actor, milestone_id, expected_action or "update"
        )

        with LogContext.bind(
            actor_id=actor.user_id, entity_type="milestone", entity_id=milestone.id
        ):
            decision = self._decide(
                EntityKind.MILESTONE,
                milestone.status,
                status,
                relation,
                expected_action=expected_action,
            )
            if decision.noop:
                return milestone.to_dto()

            previous = milestone.status
            milestone.status = decision.requested
            milestone.updated_by_id = actor.user_id
            self.session.flush()

            logger.info(
                "milestone_status_changed",
                extra={
                    "milestone_id": str(milestone.id),
                    "from_status": previous.value,
                    "to_status": milestone.status.value,
                    "action": decision.action,
                },
            )
            if decision.action == "publish":
                self._notify_published(milestone, milestone.application, actor)
            elif decision.action == "complete":
                self._publish(
                    NotificationEvent(
                        type=NotificationType.MILESTONE,
                        action=NotificationAction.COMPLETED,
                        recipient_id=milestone.application.applicant_id,
                        sender_id=actor.user_id,
                        entity_id=milestone.id,
                        title="Milestone Completed",
                        content=f"Milestone '{milestone.title}' has been completed",
                        metadata=self._metadata(milestone),
                    )
                )
        return milestone.to_dto()

    def publish_milestone(self, actor: Actor | None, milestone_id: UUID) -> MilestoneInfo:
        return self.change_status(
            actor, milestone_id, MilestoneStatus.UNDER_REVIEW, expected_action="publish"
        )

    def unpublish_milestone(self, actor: Actor | None, milestone_id: UUID) -> MilestoneInfo:
        return self.change_status(
            actor, milestone_id, MilestoneStatus.DRAFT, expected_action="unpublish"
        )

    def start_milestone(self, actor: Actor | None, milestone_id: UUID) -> MilestoneInfo:
        return self.change_status(
            actor, milestone_id, MilestoneStatus.IN_PROGRESS, expected_action="start"
        )

    def complete_milestone(
        self,
        actor: Actor | None,
        milestone_id: UUID,
        payout_tx: str | None = None,
    ) -> MilestoneInfo:
        """
        Approve an in-progress milestone.  Sponsor or relayer.

        With *payout_tx* the payout is recorded in the same transaction.
        """
        if payout_tx is not None:
            validate_hash(payout_tx, "payout_tx")
        info = self.change_status(
            actor, milestone_id, MilestoneStatus.COMPLETED, expected_action="complete"
        )
        if payout_tx is not None:
            info = self.record_payout(actor, milestone_id, payout_tx)
        return info

    def record_payout(
        self, actor: Actor | None, milestone_id: UUID, payout_tx: str
    ) -> MilestoneInfo:
        """
        Store the payout transaction hash of a completed milestone.

        Raises:
            InvalidHashError: not 0x + 64 hex characters.
            FieldNotEditableError: milestone not completed, or already paid
                with a different hash.
        """
        actor = self.guard.require_authenticated(actor)
        payout_tx = validate_hash(payout_tx, "payout_tx")
        milestone, relation = self._load(actor, milestone_id, "update")
        check_edit(EntityKind.MILESTONE, milestone.status, ("payout_tx",), relation)

        if milestone.payout_tx is not None:
            if milestone.payout_tx.lower() == payout_tx.lower():
                return milestone.to_dto()
            raise FieldNotEditableError(
                "milestone", ("payout_tx",), milestone.status.value
            )

        milestone.payout_tx = payout_tx
        milestone.updated_by_id = actor.user_id
        self.session.flush()
        logger.info(
            "milestone_payout_recorded",
            extra={"milestone_id": str(milestone.id), "payout_tx": payout_tx},
        )
        return milestone.to_dto()

    def delete_milestone(self, actor: Actor | None, milestone_id: UUID) -> None:
        """Sponsor removes a milestone that has not started."""
        actor = self.guard.require_authenticated(actor)
        milestone, relation = self._load(actor, milestone_id, "delete")
        self.guard.require(relation, {ActorRelation.OWNER}, "delete", "milestone")
        if milestone.status not in DELETABLE_STATUSES:
            raise InvalidStatusError(
                "milestone",
                milestone.status.value,
                tuple(s.value for s in DELETABLE_STATUSES),
            )

        self.session.delete(milestone)
        self.session.flush()
        logger.info("milestone_deleted", extra={"milestone_id": str(milestone_id)})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(
        self, actor: Actor, milestone_id: UUID, action: str
    ) -> tuple[Milestone, ActorRelation]:
        milestone = self._load_for_update(Milestone, milestone_id)
        if milestone is None:
            self.guard.deny_missing(
                actor, action, "milestone", MilestoneNotFoundError(str(milestone_id))
            )
        return milestone, self.guard.relation_to_milestone(actor, milestone)

    @staticmethod
    def _metadata(milestone: Milestone) -> dict[str, str]:
        return {
            "program_id": str(milestone.program_id),
            "application_id": str(milestone.application_id),
        }

    def _notify_published(
        self, milestone: Milestone, application: Application, actor: Actor
    ) -> None:
        self._publish(
            NotificationEvent(
                type=NotificationType.MILESTONE,
                action=NotificationAction.CREATED,
                recipient_id=application.applicant_id,
                sender_id=actor.user_id,
                entity_id=milestone.id,
                title="New Milestone",
                content=f"Milestone '{milestone.title}' is ready for review",
                metadata=self._metadata(milestone),
            )
        )
