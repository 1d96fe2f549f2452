"""
Lifecycle transition table and validator (``grant_kernel.domain.lifecycle``).

Responsibility
--------------
Declares, once, every legal status move for programs, applications and
milestones, who may request it, and which business checks gate it.
``evaluate_transition`` is a pure function over that table: given the
entity kind, current status, requested status, the actor's relation to the
entity, and pre-computed facts (completion counts, on-chain record
presence, rejection reason), it answers allow / no-op / reject(reason).

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``models/``, ``services/`` or ``selectors/``.  Services gather the facts
and persist the approved status; this module only decides.

Invariants enforced
-------------------
* Guards before rules: a relation that can never request the target status
  is rejected as Forbidden before any state is looked at, so strangers
  learn nothing about the entity.
* Idempotence: requesting the current status is an allowed no-op.
* Terminal statuses (program closed; application completed / rejected /
  deleted; milestone completed) have no outgoing edges.
* Completion gating: ``complete`` edges require every child completed
  (``CompletionCount.all_completed``); admins may override on programs.
* Rejection requires a non-empty ``rejected_reason``.
* Program review requires the on-chain program record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from grant_kernel.domain.actor import ActorRelation
from grant_kernel.domain.completion import CompletionCount
from grant_kernel.domain.policy import DEFAULT_POLICY, LifecyclePolicy
from grant_kernel.domain.statuses import (
    ApplicationStatus,
    EntityKind,
    MilestoneStatus,
    OnchainStatus,
    ProgramStatus,
)
from grant_kernel.exceptions import (
    FieldNotEditableError,
    IncompleteChildrenError,
    InvalidTransitionError,
    MissingOnchainRecordError,
    MissingRejectedReasonError,
    TerminalStateError,
    UnauthorizedActionError,
    ValidationError,
)

OWNER = ActorRelation.OWNER
COUNTERPARTY = ActorRelation.COUNTERPARTY
ADMIN = ActorRelation.ADMIN
RELAYER = ActorRelation.RELAYER


class TransitionCheck(str, Enum):
    """Business checks a transition rule may require."""

    ONCHAIN_PROGRAM_RECORD = "onchain_program_record"
    ALL_CHILDREN_COMPLETED = "all_children_completed"
    REJECTED_REASON = "rejected_reason"


class TransitionFailure(str, Enum):
    FORBIDDEN = "forbidden"
    TERMINAL = "terminal"
    NO_SUCH_TRANSITION = "no_such_transition"
    CHECK_FAILED = "check_failed"


@dataclass(frozen=True)
class TransitionRule:
    """One edge of the lifecycle graph."""

    action: str
    relations: frozenset[ActorRelation]
    checks: tuple[TransitionCheck, ...] = ()
    override_relations: frozenset[ActorRelation] = frozenset()


def _rule(action, relations, checks=(), override=()):
    return TransitionRule(
        action=action,
        relations=frozenset(relations),
        checks=tuple(checks),
        override_relations=frozenset(override),
    )


# =========================================================================
# Transition table
# =========================================================================

TransitionKey = tuple[EntityKind, Enum, Enum]

TRANSITION_RULES: dict[TransitionKey, TransitionRule] = {
    # Program (owner = sponsor)
    (EntityKind.PROGRAM, ProgramStatus.DRAFT, ProgramStatus.UNDER_REVIEW): _rule(
        "submit", {OWNER, ADMIN}, [TransitionCheck.ONCHAIN_PROGRAM_RECORD]
    ),
    (EntityKind.PROGRAM, ProgramStatus.UNDER_REVIEW, ProgramStatus.OPEN): _rule(
        "approve", {ADMIN}
    ),
    (EntityKind.PROGRAM, ProgramStatus.UNDER_REVIEW, ProgramStatus.DRAFT): _rule(
        "decline", {ADMIN}
    ),
    (EntityKind.PROGRAM, ProgramStatus.OPEN, ProgramStatus.CLOSED): _rule(
        "complete",
        {OWNER, ADMIN},
        [TransitionCheck.ALL_CHILDREN_COMPLETED],
        override={ADMIN},
    ),
    (EntityKind.PROGRAM, ProgramStatus.DRAFT, ProgramStatus.CLOSED): _rule(
        "cancel", {OWNER, ADMIN}
    ),
    (EntityKind.PROGRAM, ProgramStatus.UNDER_REVIEW, ProgramStatus.CLOSED): _rule(
        "cancel", {OWNER, ADMIN}
    ),
    # Application (owner = applicant, counterparty = program sponsor)
    (
        EntityKind.APPLICATION,
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.PENDING_SIGNATURE,
    ): _rule("review", {COUNTERPARTY}),
    (
        EntityKind.APPLICATION,
        ApplicationStatus.PENDING_SIGNATURE,
        ApplicationStatus.IN_PROGRESS,
    ): _rule("review", {COUNTERPARTY}),
    (
        EntityKind.APPLICATION,
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.REJECTED,
    ): _rule("review", {COUNTERPARTY}, [TransitionCheck.REJECTED_REASON]),
    (
        EntityKind.APPLICATION,
        ApplicationStatus.PENDING_SIGNATURE,
        ApplicationStatus.REJECTED,
    ): _rule("review", {COUNTERPARTY}, [TransitionCheck.REJECTED_REASON]),
    (
        EntityKind.APPLICATION,
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.DELETED,
    ): _rule("withdraw", {OWNER}),
    (
        EntityKind.APPLICATION,
        ApplicationStatus.IN_PROGRESS,
        ApplicationStatus.COMPLETED,
    ): _rule("complete", {OWNER}, [TransitionCheck.ALL_CHILDREN_COMPLETED]),
    # Milestone (owner = sponsor, counterparty = applicant)
    (
        EntityKind.MILESTONE,
        MilestoneStatus.DRAFT,
        MilestoneStatus.UNDER_REVIEW,
    ): _rule("publish", {OWNER}),
    (
        EntityKind.MILESTONE,
        MilestoneStatus.UNDER_REVIEW,
        MilestoneStatus.DRAFT,
    ): _rule("unpublish", {OWNER}),
    (
        EntityKind.MILESTONE,
        MilestoneStatus.UNDER_REVIEW,
        MilestoneStatus.IN_PROGRESS,
    ): _rule("start", {OWNER, RELAYER}),
    (
        EntityKind.MILESTONE,
        MilestoneStatus.IN_PROGRESS,
        MilestoneStatus.COMPLETED,
    ): _rule("complete", {OWNER, RELAYER}),
}

TERMINAL_STATUSES: dict[EntityKind, frozenset[Enum]] = {
    EntityKind.PROGRAM: frozenset({ProgramStatus.CLOSED}),
    EntityKind.APPLICATION: frozenset(
        {
            ApplicationStatus.COMPLETED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.DELETED,
        }
    ),
    EntityKind.MILESTONE: frozenset({MilestoneStatus.COMPLETED}),
}

STATUS_ENUMS: dict[EntityKind, type[Enum]] = {
    EntityKind.PROGRAM: ProgramStatus,
    EntityKind.APPLICATION: ApplicationStatus,
    EntityKind.MILESTONE: MilestoneStatus,
}

# Child noun used in completion messages ("1 out of 2 milestones completed")
CHILD_NOUNS: dict[EntityKind, str] = {
    EntityKind.PROGRAM: "applications",
    EntityKind.APPLICATION: "milestones",
}


def allowed_targets(kind: EntityKind, current: Enum) -> frozenset[Enum]:
    """Statuses reachable in one step from *current*."""
    return frozenset(
        to for (k, frm, to) in TRANSITION_RULES if k == kind and frm == current
    )


def is_terminal(kind: EntityKind, status: Enum) -> bool:
    return status in TERMINAL_STATUSES[kind]


def required_checks(
    kind: EntityKind,
    current: Enum,
    requested: Enum,
    relation: ActorRelation,
) -> tuple[TransitionCheck, ...]:
    """
    Checks the caller must gather facts for before evaluating.

    Empty unless the edge exists and *relation* may take it, so services
    never compute aggregates on behalf of an actor the guard will reject.
    """
    rule = TRANSITION_RULES.get((kind, current, requested))
    if rule is None or relation not in rule.relations:
        return ()
    return rule.checks


def _relations_targeting(kind: EntityKind, requested: Enum) -> frozenset[ActorRelation]:
    relations: set[ActorRelation] = set()
    for (k, _, to), rule in TRANSITION_RULES.items():
        if k == kind and to == requested:
            relations |= rule.relations
    return frozenset(relations)


def _action_targeting(kind: EntityKind, requested: Enum) -> str:
    for (k, _, to), rule in TRANSITION_RULES.items():
        if k == kind and to == requested:
            return rule.action
    return "update"


# =========================================================================
# Evaluation
# =========================================================================


@dataclass(frozen=True)
class TransitionContext:
    """Facts gathered by the caller before evaluation."""

    completion: CompletionCount | None = None
    has_onchain_program_record: bool | None = None
    rejected_reason: str | None = None


@dataclass(frozen=True)
class TransitionDecision:
    """
    Outcome of evaluate_transition.

    ``allowed`` and ``noop`` are both True for an idempotent repeat.  On
    rejection ``failure`` names the stage that failed and ``failed_check``
    the unmet business check, with ``counts`` where one applies.
    """

    kind: EntityKind
    current: Enum
    requested: Enum
    relation: ActorRelation
    allowed: bool
    action: str
    noop: bool = False
    overridden: bool = False
    failure: TransitionFailure | None = None
    failed_check: TransitionCheck | None = None
    counts: CompletionCount | None = None
    reason: str | None = None

    def raise_if_rejected(self) -> None:
        """Convert a rejection into the matching typed exception."""
        if self.allowed:
            return

        entity = self.kind.value
        frm = self.current.value
        to = self.requested.value

        if self.failure == TransitionFailure.FORBIDDEN:
            raise UnauthorizedActionError(self.action, entity)
        if self.failure == TransitionFailure.TERMINAL:
            raise TerminalStateError(entity, frm, to)
        if self.failure == TransitionFailure.CHECK_FAILED:
            if self.failed_check == TransitionCheck.ALL_CHILDREN_COMPLETED:
                counts = self.counts or CompletionCount(0, 0)
                raise IncompleteChildrenError(
                    entity,
                    CHILD_NOUNS[self.kind],
                    counts.completed,
                    counts.total,
                    frm,
                    to,
                )
            if self.failed_check == TransitionCheck.ONCHAIN_PROGRAM_RECORD:
                raise MissingOnchainRecordError(frm, to)
            if self.failed_check == TransitionCheck.REJECTED_REASON:
                raise MissingRejectedReasonError()
        raise InvalidTransitionError(entity, frm, to, reason=self.reason)


def evaluate_transition(
    kind: EntityKind,
    current: Enum,
    requested: Enum,
    relation: ActorRelation,
    context: TransitionContext | None = None,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> TransitionDecision:
    """
    Decide whether *relation* may move an entity from *current* to *requested*.

    Order of evaluation:
        1. Relation can never request *requested* for this kind -> FORBIDDEN.
        2. current == requested -> allowed no-op.
        3. current is terminal -> TERMINAL.
        4. No edge current -> requested -> NO_SUCH_TRANSITION.
        5. Relation not allowed on this edge -> FORBIDDEN.
        6. Each required check, unless the relation overrides it -> CHECK_FAILED.

    Args:
        kind: Entity kind.
        current: Current status (member of the kind's status enum).
        requested: Requested status.
        relation: Actor relation resolved by the authorization guard.
        context: Facts required by the edge's checks.
        policy: Lifecycle policy knobs.

    Returns:
        TransitionDecision.

    Raises:
        ValidationError: *requested* is not a status of this kind.
        ValueError: a required fact is missing from *context*.
    """
    status_enum = STATUS_ENUMS[kind]
    current = status_enum(current)
    try:
        requested = status_enum(requested)
    except ValueError:
        raise ValidationError(
            f"Invalid {kind.value} status {requested!r}"
        ) from None
    context = context or TransitionContext()
    action = _action_targeting(kind, requested)

    def decide(**kwargs) -> TransitionDecision:
        return TransitionDecision(
            kind=kind,
            current=current,
            requested=requested,
            relation=relation,
            action=action,
            **kwargs,
        )

    # 1. guard: stranger, or a relation that never reaches this target
    if (
        relation == ActorRelation.STRANGER
        or relation not in _relations_targeting(kind, requested)
    ):
        return decide(allowed=False, failure=TransitionFailure.FORBIDDEN)

    # 2. idempotent repeat
    if current == requested:
        return decide(allowed=True, noop=True)

    # 3. terminal
    if is_terminal(kind, current):
        return decide(
            allowed=False,
            failure=TransitionFailure.TERMINAL,
            reason=f"{current.value} is a terminal status",
        )

    # 4. edge lookup
    rule = TRANSITION_RULES.get((kind, current, requested))
    if rule is None:
        return decide(
            allowed=False,
            failure=TransitionFailure.NO_SUCH_TRANSITION,
            reason="transition not allowed",
        )
    action = rule.action

    # 5. relation on this edge
    if relation not in rule.relations:
        return decide(allowed=False, failure=TransitionFailure.FORBIDDEN)

    # 6. checks
    overridden = False
    for check in rule.checks:
        passed, counts = _run_check(kind, check, context, policy)
        if passed:
            continue
        if (
            relation in rule.override_relations
            and policy.allow_admin_completion_override
        ):
            overridden = True
            continue
        return decide(
            allowed=False,
            failure=TransitionFailure.CHECK_FAILED,
            failed_check=check,
            counts=counts,
            reason=(
                counts.describe(CHILD_NOUNS[kind]) if counts is not None else check.value
            ),
        )

    return decide(allowed=True, overridden=overridden)


def _run_check(
    kind: EntityKind,
    check: TransitionCheck,
    context: TransitionContext,
    policy: LifecyclePolicy,
) -> tuple[bool, CompletionCount | None]:
    if check == TransitionCheck.ALL_CHILDREN_COMPLETED:
        if context.completion is None:
            raise ValueError(f"completion count required to complete {kind.value}")
        return context.completion.all_completed, context.completion

    if check == TransitionCheck.ONCHAIN_PROGRAM_RECORD:
        if not policy.require_onchain_program_for_review:
            return True, None
        if context.has_onchain_program_record is None:
            raise ValueError("on-chain program record presence required for review")
        return context.has_onchain_program_record, None

    if check == TransitionCheck.REJECTED_REASON:
        reason = context.rejected_reason
        return bool(reason and reason.strip()), None

    raise ValueError(f"Unknown transition check: {check}")


# =========================================================================
# Field edits
# =========================================================================


@dataclass(frozen=True)
class EditRule:
    """Who may edit a group of fields, and in which statuses."""

    fields: frozenset[str]
    relations: frozenset[ActorRelation]
    statuses: frozenset[Enum]


EDIT_RULES: dict[tuple[EntityKind, str], EditRule] = {
    (EntityKind.PROGRAM, "terms"): EditRule(
        fields=frozenset({"title", "price", "token_id", "network_id"}),
        relations=frozenset({OWNER, ADMIN}),
        statuses=frozenset({ProgramStatus.DRAFT, ProgramStatus.UNDER_REVIEW}),
    ),
    (EntityKind.PROGRAM, "listing"): EditRule(
        fields=frozenset(
            {"description", "skills", "deadline", "invited_members", "visibility"}
        ),
        relations=frozenset({OWNER, ADMIN}),
        statuses=frozenset(
            {ProgramStatus.DRAFT, ProgramStatus.UNDER_REVIEW, ProgramStatus.OPEN}
        ),
    ),
    (EntityKind.APPLICATION, "content"): EditRule(
        fields=frozenset({"title", "content"}),
        relations=frozenset({OWNER}),
        statuses=frozenset({ApplicationStatus.SUBMITTED}),
    ),
    (EntityKind.MILESTONE, "definition"): EditRule(
        fields=frozenset({"title", "description", "payout", "deadline"}),
        relations=frozenset({OWNER}),
        statuses=frozenset({MilestoneStatus.DRAFT, MilestoneStatus.UNDER_REVIEW}),
    ),
    (EntityKind.MILESTONE, "submission"): EditRule(
        fields=frozenset({"files"}),
        relations=frozenset({COUNTERPARTY}),
        statuses=frozenset({MilestoneStatus.IN_PROGRESS}),
    ),
    (EntityKind.MILESTONE, "payout"): EditRule(
        fields=frozenset({"payout_tx"}),
        relations=frozenset({OWNER, RELAYER}),
        statuses=frozenset({MilestoneStatus.COMPLETED}),
    ),
}


def _edit_rule_for(kind: EntityKind, field_name: str) -> EditRule:
    for (k, _), rule in EDIT_RULES.items():
        if k == kind and field_name in rule.fields:
            return rule
    raise ValidationError(f"Field {field_name!r} of {kind.value} is not editable")


def check_edit(
    kind: EntityKind,
    current: Enum,
    fields: tuple[str, ...] | list[str] | set[str],
    relation: ActorRelation,
) -> None:
    """
    Raise unless *relation* may edit every one of *fields* in *current*.

    Guards first: any field the relation may not touch yields Forbidden
    before the status is considered.

    Raises:
        UnauthorizedActionError: relation may not edit one of the fields.
        FieldNotEditableError: fields are locked in the current status.
        ValidationError: unknown field.
    """
    current = STATUS_ENUMS[kind](current)
    rules = [(_edit_rule_for(kind, name), name) for name in sorted(fields)]

    for rule, _ in rules:
        if relation not in rule.relations:
            raise UnauthorizedActionError("update", kind.value)

    locked = tuple(name for rule, name in rules if current not in rule.statuses)
    if locked:
        raise FieldNotEditableError(kind.value, locked, current.value)


# =========================================================================
# On-chain object status
# =========================================================================

ONCHAIN_TRANSITIONS: dict[OnchainStatus, frozenset[OnchainStatus]] = {
    OnchainStatus.ACTIVE: frozenset(
        {
            OnchainStatus.PAUSED,
            OnchainStatus.UPDATED,
            OnchainStatus.COMPLETED,
            OnchainStatus.CANCELLED,
        }
    ),
    OnchainStatus.PAUSED: frozenset(
        {
            OnchainStatus.ACTIVE,
            OnchainStatus.UPDATED,
            OnchainStatus.COMPLETED,
            OnchainStatus.CANCELLED,
        }
    ),
    OnchainStatus.UPDATED: frozenset(
        {
            OnchainStatus.ACTIVE,
            OnchainStatus.COMPLETED,
            OnchainStatus.CANCELLED,
        }
    ),
    OnchainStatus.COMPLETED: frozenset(),
    OnchainStatus.CANCELLED: frozenset(),
}


def validate_onchain_transition(
    entity_type: str, current: OnchainStatus, requested: OnchainStatus
) -> bool:
    """
    Validate a status change of an on-chain record.

    Returns:
        False for a same-status no-op, True for a real change.

    Raises:
        TerminalStateError: current status is completed or cancelled.
        InvalidTransitionError: no such edge.
    """
    current = OnchainStatus(current)
    try:
        requested = OnchainStatus(requested)
    except ValueError:
        raise ValidationError(
            f"Invalid {entity_type} status {requested!r}"
        ) from None
    if current == requested:
        return False
    allowed = ONCHAIN_TRANSITIONS[current]
    if not allowed:
        raise TerminalStateError(entity_type, current.value, requested.value)
    if requested not in allowed:
        raise InvalidTransitionError(
            entity_type, current.value, requested.value, reason="transition not allowed"
        )
    return True
