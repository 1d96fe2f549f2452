"""
Pure domain layer.

Status enums, the lifecycle transition table, completion counting, actor
relations, DTOs and the notification port.  NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O
"""

from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from grant_kernel.domain.completion import CompletionCount, count_completion
from grant_kernel.domain.events import EventPublisher, NotificationEvent, NullPublisher
from grant_kernel.domain.lifecycle import (
    EDIT_RULES,
    TERMINAL_STATUSES,
    TRANSITION_RULES,
    TransitionCheck,
    TransitionContext,
    TransitionDecision,
    TransitionFailure,
    TransitionRule,
    check_edit,
    evaluate_transition,
)
from grant_kernel.domain.policy import DEFAULT_POLICY, LifecyclePolicy
from grant_kernel.domain.statuses import (
    ApplicationStatus,
    EntityKind,
    LoginType,
    MilestoneStatus,
    NotificationAction,
    NotificationType,
    OnchainStatus,
    ProgramStatus,
    ProgramVisibility,
    UserRole,
)

__all__ = [
    "Actor",
    "ActorRelation",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CompletionCount",
    "count_completion",
    "EventPublisher",
    "NotificationEvent",
    "NullPublisher",
    "EDIT_RULES",
    "TERMINAL_STATUSES",
    "TRANSITION_RULES",
    "TransitionCheck",
    "TransitionContext",
    "TransitionDecision",
    "TransitionFailure",
    "TransitionRule",
    "check_edit",
    "evaluate_transition",
    "DEFAULT_POLICY",
    "LifecyclePolicy",
    "ApplicationStatus",
    "EntityKind",
    "LoginType",
    "MilestoneStatus",
    "NotificationAction",
    "NotificationType",
    "OnchainStatus",
    "ProgramStatus",
    "ProgramVisibility",
    "UserRole",
]
