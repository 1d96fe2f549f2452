"""
Tests for the lifecycle transition table and validator.

Covers:
- Guards before rules (strangers and wrong relations are Forbidden first)
- Idempotent repeats
- Terminal statuses
- Completion gating with literal counts, and the admin override
- Rejection reason and on-chain record checks
- Field edit rules
- On-chain record status graph
"""

import pytest

from grant_kernel.domain.actor import ActorRelation
from grant_kernel.domain.completion import CompletionCount
from grant_kernel.domain.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITION_RULES,
    TransitionCheck,
    TransitionContext,
    TransitionFailure,
    allowed_targets,
    check_edit,
    evaluate_transition,
    is_terminal,
    required_checks,
    validate_onchain_transition,
)
from grant_kernel.domain.policy import LifecyclePolicy
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
STRANGER = ActorRelation.STRANGER


def completed(done, total):
    return TransitionContext(completion=CompletionCount(done, total))


class TestTransitionTable:
    def test_terminal_statuses_have_no_outgoing_edges(self):
        for kind, statuses in TERMINAL_STATUSES.items():
            for status in statuses:
                assert allowed_targets(kind, status) == frozenset()

    def test_every_rule_names_at_least_one_relation(self):
        for key, rule in TRANSITION_RULES.items():
            assert rule.relations, key
            assert STRANGER not in rule.relations

    def test_program_graph(self):
        assert allowed_targets(EntityKind.PROGRAM, ProgramStatus.DRAFT) == {
            ProgramStatus.UNDER_REVIEW,
            ProgramStatus.CLOSED,
        }
        assert allowed_targets(EntityKind.PROGRAM, ProgramStatus.UNDER_REVIEW) == {
            ProgramStatus.OPEN,
            ProgramStatus.DRAFT,
            ProgramStatus.CLOSED,
        }
        assert allowed_targets(EntityKind.PROGRAM, ProgramStatus.OPEN) == {
            ProgramStatus.CLOSED
        }

    def test_application_in_progress_only_completes(self):
        assert allowed_targets(
            EntityKind.APPLICATION, ApplicationStatus.IN_PROGRESS
        ) == {ApplicationStatus.COMPLETED}

    def test_is_terminal(self):
        assert is_terminal(EntityKind.PROGRAM, ProgramStatus.CLOSED)
        assert is_terminal(EntityKind.APPLICATION, ApplicationStatus.DELETED)
        assert is_terminal(EntityKind.MILESTONE, MilestoneStatus.COMPLETED)
        assert not is_terminal(EntityKind.MILESTONE, MilestoneStatus.IN_PROGRESS)


class TestGuardsFirst:
    def test_stranger_is_forbidden_even_from_terminal_status(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.REJECTED,
            ApplicationStatus.COMPLETED,
            STRANGER,
        )
        assert not decision.allowed
        assert decision.failure == TransitionFailure.FORBIDDEN
        with pytest.raises(UnauthorizedActionError) as exc_info:
            decision.raise_if_rejected()
        assert str(exc_info.value) == "Unauthorized to complete this application"

    def test_sponsor_cannot_complete_application(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            COUNTERPARTY,
            completed(2, 2),
        )
        assert decision.failure == TransitionFailure.FORBIDDEN

    def test_forbidden_message_does_not_leak_counts(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            ADMIN,
            completed(1, 2),
        )
        with pytest.raises(UnauthorizedActionError) as exc_info:
            decision.raise_if_rejected()
        assert "out of" not in str(exc_info.value)

    def test_forbidden_on_edge_for_wrong_relation(self):
        # only admins approve
        decision = evaluate_transition(
            EntityKind.PROGRAM, ProgramStatus.UNDER_REVIEW, ProgramStatus.OPEN, OWNER
        )
        assert decision.failure == TransitionFailure.FORBIDDEN

    def test_relayer_cannot_close_program(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.OPEN,
            ProgramStatus.CLOSED,
            RELAYER,
            completed(3, 3),
        )
        assert decision.failure == TransitionFailure.FORBIDDEN
        with pytest.raises(UnauthorizedActionError):
            decision.raise_if_rejected()

    def test_required_checks_empty_for_rejected_relation(self):
        assert required_checks(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            COUNTERPARTY,
        ) == ()
        assert required_checks(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            OWNER,
        ) == (TransitionCheck.ALL_CHILDREN_COMPLETED,)


class TestIdempotence:
    def test_repeat_is_allowed_noop(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.COMPLETED,
            ApplicationStatus.COMPLETED,
            OWNER,
        )
        assert decision.allowed
        assert decision.noop
        decision.raise_if_rejected()

    def test_repeat_on_terminal_program(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM, ProgramStatus.CLOSED, ProgramStatus.CLOSED, OWNER
        )
        assert decision.allowed and decision.noop


class TestTerminal:
    def test_rejected_application_cannot_complete(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.REJECTED,
            ApplicationStatus.COMPLETED,
            OWNER,
        )
        assert decision.failure == TransitionFailure.TERMINAL
        with pytest.raises(TerminalStateError):
            decision.raise_if_rejected()

    def test_closed_program_cannot_reopen(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM, ProgramStatus.CLOSED, ProgramStatus.DRAFT, ADMIN
        )
        with pytest.raises(TerminalStateError):
            decision.raise_if_rejected()


class TestCompletionGating:
    def test_partial_milestones_block_with_counts(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            OWNER,
            completed(1, 2),
        )
        assert decision.failure == TransitionFailure.CHECK_FAILED
        assert decision.failed_check == TransitionCheck.ALL_CHILDREN_COMPLETED
        with pytest.raises(IncompleteChildrenError) as exc_info:
            decision.raise_if_rejected()
        assert str(exc_info.value) == (
            "Cannot complete application: 1 out of 2 milestones completed"
        )
        assert exc_info.value.completed == 1
        assert exc_info.value.total == 2

    def test_zero_milestones_never_completes(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            OWNER,
            completed(0, 0),
        )
        with pytest.raises(IncompleteChildrenError) as exc_info:
            decision.raise_if_rejected()
        assert "0 out of 0 milestones completed" in str(exc_info.value)

    def test_all_milestones_completed_allows(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.IN_PROGRESS,
            ApplicationStatus.COMPLETED,
            OWNER,
            completed(3, 3),
        )
        assert decision.allowed and not decision.noop
        assert decision.action == "complete"

    def test_program_completion_message(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.OPEN,
            ProgramStatus.CLOSED,
            OWNER,
            completed(1, 3),
        )
        with pytest.raises(IncompleteChildrenError) as exc_info:
            decision.raise_if_rejected()
        assert str(exc_info.value) == (
            "Cannot complete program: 1 out of 3 applications completed"
        )

    def test_admin_overrides_program_completion(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.OPEN,
            ProgramStatus.CLOSED,
            ADMIN,
            completed(0, 2),
        )
        assert decision.allowed
        assert decision.overridden

    def test_admin_override_disabled_by_policy(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.OPEN,
            ProgramStatus.CLOSED,
            ADMIN,
            completed(0, 2),
            policy=LifecyclePolicy(allow_admin_completion_override=False),
        )
        assert decision.failure == TransitionFailure.CHECK_FAILED

    def test_missing_completion_fact_is_a_programming_error(self):
        with pytest.raises(ValueError):
            evaluate_transition(
                EntityKind.APPLICATION,
                ApplicationStatus.IN_PROGRESS,
                ApplicationStatus.COMPLETED,
                OWNER,
            )


class TestOtherChecks:
    def test_reject_without_reason(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.SUBMITTED,
            ApplicationStatus.REJECTED,
            COUNTERPARTY,
            TransitionContext(rejected_reason="   "),
        )
        with pytest.raises(MissingRejectedReasonError):
            decision.raise_if_rejected()

    def test_reject_with_reason(self):
        decision = evaluate_transition(
            EntityKind.APPLICATION,
            ApplicationStatus.SUBMITTED,
            ApplicationStatus.REJECTED,
            COUNTERPARTY,
            TransitionContext(rejected_reason="budget"),
        )
        assert decision.allowed

    def test_review_requires_onchain_record(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.DRAFT,
            ProgramStatus.UNDER_REVIEW,
            OWNER,
            TransitionContext(has_onchain_program_record=False),
        )
        with pytest.raises(MissingOnchainRecordError):
            decision.raise_if_rejected()

    def test_review_without_record_when_policy_relaxed(self):
        decision = evaluate_transition(
            EntityKind.PROGRAM,
            ProgramStatus.DRAFT,
            ProgramStatus.UNDER_REVIEW,
            OWNER,
            policy=LifecyclePolicy(require_onchain_program_for_review=False),
        )
        assert decision.allowed

    def test_unknown_edge(self):
        decision = evaluate_transition(
            EntityKind.MILESTONE,
            MilestoneStatus.DRAFT,
            MilestoneStatus.COMPLETED,
            OWNER,
        )
        assert decision.failure == TransitionFailure.NO_SUCH_TRANSITION
        with pytest.raises(InvalidTransitionError) as exc_info:
            decision.raise_if_rejected()
        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "completed"

    def test_invalid_status_value(self):
        with pytest.raises(ValidationError):
            evaluate_transition(
                EntityKind.MILESTONE, MilestoneStatus.DRAFT, "finished", OWNER
            )

    def test_string_statuses_are_accepted(self):
        decision = evaluate_transition(
            EntityKind.MILESTONE, "draft", "under_review", OWNER
        )
        assert decision.allowed
        assert decision.requested == MilestoneStatus.UNDER_REVIEW


class TestEditRules:
    def test_applicant_edits_submitted_content(self):
        check_edit(
            EntityKind.APPLICATION, ApplicationStatus.SUBMITTED, ["content"], OWNER
        )

    def test_content_locked_after_review(self):
        with pytest.raises(FieldNotEditableError) as exc_info:
            check_edit(
                EntityKind.APPLICATION,
                ApplicationStatus.PENDING_SIGNATURE,
                ["content"],
                OWNER,
            )
        assert exc_info.value.fields == ("content",)

    def test_guard_before_status_lock(self):
        with pytest.raises(UnauthorizedActionError):
            check_edit(
                EntityKind.APPLICATION,
                ApplicationStatus.COMPLETED,
                ["content"],
                COUNTERPARTY,
            )

    def test_program_terms_frozen_once_open(self):
        check_edit(EntityKind.PROGRAM, ProgramStatus.OPEN, ["description"], OWNER)
        with pytest.raises(FieldNotEditableError):
            check_edit(EntityKind.PROGRAM, ProgramStatus.OPEN, ["price"], OWNER)

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            check_edit(EntityKind.MILESTONE, MilestoneStatus.DRAFT, ["status"], OWNER)

    def test_builder_submits_files_only_in_progress(self):
        check_edit(
            EntityKind.MILESTONE, MilestoneStatus.IN_PROGRESS, ["files"], COUNTERPARTY
        )
        with pytest.raises(FieldNotEditableError):
            check_edit(
                EntityKind.MILESTONE, MilestoneStatus.COMPLETED, ["files"], COUNTERPARTY
            )


class TestOnchainStatus:
    def test_same_status_is_noop(self):
        assert validate_onchain_transition(
            "onchain program info", OnchainStatus.ACTIVE, OnchainStatus.ACTIVE
        ) is False

    def test_pause_and_resume(self):
        assert validate_onchain_transition(
            "onchain program info", OnchainStatus.ACTIVE, OnchainStatus.PAUSED
        )
        assert validate_onchain_transition(
            "onchain program info", OnchainStatus.PAUSED, OnchainStatus.ACTIVE
        )

    def test_cancelled_is_terminal(self):
        with pytest.raises(TerminalStateError):
            validate_onchain_transition(
                "onchain contract info", OnchainStatus.CANCELLED, OnchainStatus.ACTIVE
            )

    def test_updated_cannot_pause(self):
        with pytest.raises(InvalidTransitionError):
            validate_onchain_transition(
                "onchain contract info", OnchainStatus.UPDATED, OnchainStatus.PAUSED
            )
