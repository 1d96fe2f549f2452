"""
ProgramService -- sponsor-owned funding programs and their lifecycle.

Responsibility:
    Creates and edits programs, and is the only code path that moves a
    program through draft -> under_review -> open -> closed.

Architecture position:
    Kernel > Services.  Guards via ``AuthorizationGuard``; decisions via
    ``domain.lifecycle``; counts via ``CompletionSelector``.

Invariants enforced:
    - draft -> under_review requires the program's on-chain record
      (policy-toggleable).
    - open -> closed through ``complete`` requires every live application
      completed, unless an admin overrides.
    - closed is terminal.
    - Terms (title, price, token, network) are frozen once the program
      is open.

Failure modes:
    - UnauthorizedActionError for non-sponsors, before any state is read.
    - IncompleteChildrenError with the literal counts.
    - MissingOnchainRecordError on review without an on-chain record.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from grant_kernel.db.types import parse_amount, validate_hash
from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.dtos import OnchainProgramRecord, ProgramInfo
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.lifecycle import (
    TransitionCheck,
    TransitionContext,
    check_edit,
    required_checks,
)
from grant_kernel.domain.statuses import (
    EntityKind,
    NotificationAction,
    NotificationType,
    ProgramStatus,
    ProgramVisibility,
)
from grant_kernel.exceptions import (
    InvalidStatusError,
    NetworkNotFoundError,
    ProgramNotFoundError,
    SmartContractNotFoundError,
    TokenNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import LogContext, get_logger
from grant_kernel.models.network import Network, SmartContract, Token
from grant_kernel.models.onchain import OnchainProgramInfo
from grant_kernel.models.program import Program
from grant_kernel.selectors.completion_selector import CompletionSelector
from grant_kernel.selectors.program_selector import ProgramSelector
from grant_kernel.services.base import BaseService

logger = get_logger("services.program")

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "skills",
        "deadline",
        "invited_members",
        "visibility",
        "price",
        "token_id",
        "network_id",
    }
)

SPONSOR_OR_ADMIN = frozenset({ActorRelation.OWNER, ActorRelation.ADMIN})
OWNER_DELETABLE_STATUSES = (ProgramStatus.DRAFT, ProgramStatus.UNDER_REVIEW)


class ProgramService(BaseService[Program]):
    """Program writes.  All public methods return frozen DTOs."""

    def __init__(self, session, publisher=None, clock=None, policy=None):
        super().__init__(session, publisher, clock, policy)
        self.completion = CompletionSelector(session)
        self.programs = ProgramSelector(session)

    # ------------------------------------------------------------------
    # Creation and edits
    # ------------------------------------------------------------------

    def create_program(
        self,
        actor: Actor | None,
        title: str,
        description: str | None = None,
        skills: list[str] | None = None,
        deadline: datetime | None = None,
        invited_members: list[str] | None = None,
        visibility: ProgramVisibility | str = ProgramVisibility.PUBLIC,
        price: Decimal | str | int | None = None,
        network_id: UUID | None = None,
        token_id: UUID | None = None,
    ) -> ProgramInfo:
        """
        Create a draft program sponsored by *actor*.

        Raises:
            NotAuthorizedError: anonymous actor.
            ValidationError: empty title, bad visibility or price.
            NetworkNotFoundError / TokenNotFoundError: unknown reference.
        """
        program = self._build_program(
            actor,
            title=title,
            description=description,
            skills=skills,
            deadline=deadline,
            invited_members=invited_members,
            visibility=visibility,
            price=price,
            network_id=network_id,
            token_id=token_id,
        )
        self.session.add(program)
        self.session.flush()

        logger.info(
            "program_created",
            extra={"program_id": str(program.id), "sponsor_id": str(program.sponsor_id)},
        )
        return program.to_dto()

    def create_program_with_onchain(
        self,
        actor: Actor | None,
        title: str,
        smart_contract_id: UUID,
        onchain_program_id: int,
        tx: str,
        network_id: UUID,
        **fields: Any,
    ) -> tuple[ProgramInfo, OnchainProgramRecord]:
        """
        Create a program together with its on-chain record in one flush.

        The program starts in draft and can be submitted for review at once.
        """
        actor = self.guard.require_authenticated(actor)
        tx = validate_hash(tx, "tx")
        smart_contract = self.session.get(SmartContract, smart_contract_id)
        if smart_contract is None:
            raise SmartContractNotFoundError(str(smart_contract_id))

        program = self._build_program(actor, title=title, network_id=network_id, **fields)
        self.session.add(program)
        self.session.flush()

        record = OnchainProgramInfo(
            program_id=program.id,
            network_id=network_id,
            smart_contract_id=smart_contract.id,
            onchain_program_id=onchain_program_id,
            tx=tx,
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "program_created",
            extra={
                "program_id": str(program.id),
                "sponsor_id": str(program.sponsor_id),
                "onchain_program_id": onchain_program_id,
            },
        )
        return program.to_dto(), record.to_dto()

    def update_program(
        self, actor: Actor | None, program_id: UUID, **changes: Any
    ) -> ProgramInfo:
        """
        Edit program fields.

        Terms (title, price, token, network) are editable while draft or
        under review; listing fields also while open.  Status is not an
        editable field; use the lifecycle operations.

        Raises:
            UnauthorizedActionError: actor is not the sponsor or an admin.
            FieldNotEditableError: a field is locked in the current status.
            ValidationError: unknown field or malformed value.
        """
        actor = self.guard.require_authenticated(actor)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown program fields: {', '.join(sorted(unknown))}"
            )

        program = self._load_for_update(Program, program_id)
        if program is None:
            self.guard.deny_missing(
                actor, "update", "program", ProgramNotFoundError(str(program_id))
            )
        relation = self.guard.relation_to_program(actor, program)
        if not changes:
            self.guard.require(relation, SPONSOR_OR_ADMIN, "update", "program")
            return program.to_dto()
        check_edit(EntityKind.PROGRAM, program.status, tuple(changes), relation)

        for name, value in self._clean_fields(changes).items():
            setattr(program, name, value)
        self.session.flush()

        logger.info(
            "program_updated",
            extra={"program_id": str(program.id), "fields": sorted(changes)},
        )
        return program.to_dto()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def change_status(
        self,
        actor: Actor | None,
        program_id: UUID,
        status: ProgramStatus | str,
        expected_action: str | None = None,
    ) -> ProgramInfo:
        """
        Move a program to *status* if the lifecycle table allows it.

        Requesting the current status is a no-op.  The program row is
        locked for the whole read-aggregate-write sequence.
        """
        actor = self.guard.require_authenticated(actor)
        program = self._load_for_update(Program, program_id)
        if program is None:
            self.guard.deny_missing(
                actor,
                expected_action or "update",
                "program",
                ProgramNotFoundError(str(program_id)),
            )
        relation = self.guard.relation_to_program(actor, program)

        with LogContext.bind(
            actor_id=actor.user_id, entity_type="program", entity_id=program.id
        ):
            checks = required_checks(EntityKind.PROGRAM, program.status, status, relation)
            context = self._gather_context(program, checks)
            decision = self._decide(
                EntityKind.PROGRAM,
                program.status,
                status,
                relation,
                context,
                expected_action=expected_action,
            )
            if decision.noop:
                return program.to_dto()

            previous = program.status
            program.status = decision.requested
            program.updated_by_id = actor.user_id
            self.session.flush()

            if decision.overridden:
                logger.warning(
                    "program_completion_overridden",
                    extra={
                        "program_id": str(program.id),
                        "completed": context.completion.completed,
                        "total": context.completion.total,
                    },
                )
            logger.info(
                "program_status_changed",
                extra={
                    "program_id": str(program.id),
                    "from_status": previous.value,
                    "to_status": program.status.value,
                    "action": decision.action,
                },
            )
            self._notify_status(program, decision.action, actor)
        return program.to_dto()

    def submit_for_review(self, actor: Actor | None, program_id: UUID) -> ProgramInfo:
        return self.change_status(
            actor, program_id, ProgramStatus.UNDER_REVIEW, expected_action="submit"
        )

    def approve_program(self, actor: Actor | None, program_id: UUID) -> ProgramInfo:
        return self.change_status(
            actor, program_id, ProgramStatus.OPEN, expected_action="approve"
        )

    def decline_program(self, actor: Actor | None, program_id: UUID) -> ProgramInfo:
        return self.change_status(
            actor, program_id, ProgramStatus.DRAFT, expected_action="decline"
        )

    def cancel_program(self, actor: Actor | None, program_id: UUID) -> ProgramInfo:
        """Close a program that never opened."""
        return self.change_status(
            actor, program_id, ProgramStatus.CLOSED, expected_action="cancel"
        )

    def complete_program(self, actor: Actor | None, program_id: UUID) -> ProgramInfo:
        """
        Close an open program once every live application is completed.

        Raises:
            UnauthorizedActionError: actor is not the sponsor or an admin.
            IncompleteChildrenError: e.g. "1 out of 2 applications completed".
        """
        return self.change_status(
            actor, program_id, ProgramStatus.CLOSED, expected_action="complete"
        )

    def delete_program(self, actor: Actor | None, program_id: UUID) -> None:
        """
        Hard-delete a program; applications, milestones and contracts go
        with it through the foreign-key cascade.

        Sponsors may delete while draft or under review; admins always.
        """
        actor = self.guard.require_authenticated(actor)
        program = self._load_for_update(Program, program_id)
        if program is None:
            self.guard.deny_missing(
                actor, "delete", "program", ProgramNotFoundError(str(program_id))
            )
        relation = self.guard.relation_to_program(actor, program)
        self.guard.require(relation, SPONSOR_OR_ADMIN, "delete", "program")
        if (
            relation == ActorRelation.OWNER
            and program.status not in OWNER_DELETABLE_STATUSES
        ):
            raise InvalidStatusError(
                "program",
                program.status.value,
                tuple(s.value for s in OWNER_DELETABLE_STATUSES),
            )

        self.session.delete(program)
        self.session.flush()
        logger.info(
            "program_deleted",
            extra={"program_id": str(program_id), "actor_id": str(actor.user_id)},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_program(self, actor: Actor | None, title: str, **fields: Any) -> Program:
        actor = self.guard.require_authenticated(actor)
        if not title or not title.strip():
            raise ValidationError("Program title is required")
        cleaned = self._clean_fields({k: v for k, v in fields.items() if v is not None})
        return Program(sponsor_id=actor.user_id, title=title.strip(), **cleaned)

    def _clean_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        cleaned = dict(fields)
        if "title" in cleaned:
            title = cleaned["title"]
            if not title or not str(title).strip():
                raise ValidationError("Program title is required")
            cleaned["title"] = str(title).strip()
        if cleaned.get("price") is not None:
            cleaned["price"] = parse_amount(cleaned["price"], "price")
        if "visibility" in cleaned:
            try:
                cleaned["visibility"] = ProgramVisibility(cleaned["visibility"])
            except ValueError:
                raise InvalidStatusError(
                    "program visibility",
                    str(cleaned["visibility"]),
                    tuple(v.value for v in ProgramVisibility),
                ) from None
        for name in ("skills", "invited_members"):
            if name in cleaned:
                cleaned[name] = list(cleaned[name] or [])
        if cleaned.get("network_id") is not None:
            if self.session.get(Network, cleaned["network_id"]) is None:
                raise NetworkNotFoundError(str(cleaned["network_id"]))
        if cleaned.get("token_id") is not None:
            token = self.session.get(Token, cleaned["token_id"])
            if token is None:
                raise TokenNotFoundError(str(cleaned["token_id"]))
            network_id = cleaned.get("network_id")
            if network_id is not None and token.network_id != network_id:
                raise ValidationError("Token does not belong to the program network")
        return cleaned

    def _gather_context(
        self, program: Program, checks: tuple[TransitionCheck, ...]
    ) -> TransitionContext:
        completion = None
        has_record = None
        if TransitionCheck.ALL_CHILDREN_COMPLETED in checks:
            completion = self.completion.program_completion(
                program.id,
                excluded=self.policy.program_completion_excluded,
                lock=True,
            )
        if TransitionCheck.ONCHAIN_PROGRAM_RECORD in checks:
            has_record = self.programs.has_onchain_record(program.id)
        return TransitionContext(
            completion=completion, has_onchain_program_record=has_record
        )

    def _notify_status(self, program: Program, action: str, actor: Actor) -> None:
        if action == "approve":
            self._publish(
                NotificationEvent(
                    type=NotificationType.PROGRAM,
                    action=NotificationAction.ACCEPTED,
                    recipient_id=program.sponsor_id,
                    sender_id=actor.user_id,
                    entity_id=program.id,
                    title="Program Approved",
                    content=f"Your program '{program.title}' is now open for applications.",
                )
            )
        elif action == "decline":
            self._publish(
                NotificationEvent(
                    type=NotificationType.PROGRAM,
                    action=NotificationAction.REJECTED,
                    recipient_id=program.sponsor_id,
                    sender_id=actor.user_id,
                    entity_id=program.id,
                    title="Program Declined",
                    content=f"Your program '{program.title}' was returned to draft.",
                )
            )
        elif action == "complete":
            excluded = self.policy.program_completion_excluded
            recipients = {
                app.applicant_id
                for app in program.applications
                if app.status not in excluded
            }
            for applicant_id in sorted(recipients, key=str):
                self._publish(
                    NotificationEvent(
                        type=NotificationType.PROGRAM,
                        action=NotificationAction.COMPLETED,
                        recipient_id=applicant_id,
                        sender_id=actor.user_id,
                        entity_id=program.id,
                        title="Program Completed",
                        content=f"The program '{program.title}' has been completed.",
                    )
                )
