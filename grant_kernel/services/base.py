"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and persist via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure lifecycle rules.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()``, a transport handler, or a test) owns both.
    - Notifications are best effort: a failing publisher is logged and
      never alters the result of the primary write.

Failure modes:
    - A subclass calling ``session.commit()`` breaks the all-or-nothing
      guarantee of multi-step operations (status write + side fields).
"""

from abc import ABC
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from grant_kernel.db.base import Base
from grant_kernel.domain.actor import ActorRelation
from grant_kernel.domain.clock import Clock, SystemClock
from grant_kernel.domain.events import EventPublisher, NotificationEvent, NullPublisher
from grant_kernel.domain.lifecycle import (
    TransitionContext,
    TransitionDecision,
    TransitionFailure,
    evaluate_transition,
)
from grant_kernel.domain.policy import DEFAULT_POLICY, LifecyclePolicy
from grant_kernel.domain.statuses import EntityKind
from grant_kernel.exceptions import InvalidTransitionError
from grant_kernel.logging_config import get_logger
from grant_kernel.services.authorization import AuthorizationGuard

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.  Collaborators (publisher, clock, policy) are
        injected; nothing is looked up from module state.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide paginated reads -- those live in
          ``grant_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        policy: LifecyclePolicy | None = None,
    ):
        """
        Args:
            session: SQLAlchemy session for database operations.
            publisher: Notification port; defaults to dropping events.
            clock: Time source; defaults to the system clock.
            policy: Lifecycle policy knobs; defaults to DEFAULT_POLICY.
        """
        self.session = session
        self.publisher = publisher or NullPublisher()
        self.clock = clock or SystemClock()
        self.policy = policy or DEFAULT_POLICY
        self.guard = AuthorizationGuard(session)

    def _load_for_update(
        self, model: type[ModelType], entity_id: UUID, read: bool = False
    ):
        """
        Load one row with ``SELECT ... FOR UPDATE`` (``FOR SHARE`` when *read*).

        Child inserts that depend on the parent's status take the shared
        lock, so they wait for a concurrent status change to commit.

        ``populate_existing`` refreshes an instance already in the identity
        map, so the caller decides on the locked, current row.
        """
        return self.session.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update(read=read)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _decide(
        self,
        kind: EntityKind,
        current: Enum,
        requested: Enum | str,
        relation: ActorRelation,
        context: TransitionContext | None = None,
        expected_action: str | None = None,
    ) -> TransitionDecision:
        """
        Evaluate a status change and raise on rejection.

        ``expected_action`` pins a named operation (``cancel``, ``approve``)
        to its own edge, so e.g. cancelling an open program cannot slip
        through the ``complete`` edge that shares the same target status.

        Raises:
            UnauthorizedActionError, InvalidTransitionError, ValidationError.
        """
        decision = evaluate_transition(
            kind, current, requested, relation, context, self.policy
        )
        on_edge = (
            decision.allowed and not decision.noop
        ) or decision.failure == TransitionFailure.CHECK_FAILED
        if expected_action is not None and on_edge and decision.action != expected_action:
            raise InvalidTransitionError(
                kind.value,
                decision.current.value,
                decision.requested.value,
                reason=f"{expected_action} does not apply from {decision.current.value}",
            )
        if not decision.allowed:
            logger.warning(
                "transition_rejected",
                extra={
                    "entity_type": kind.value,
                    "from_status": decision.current.value,
                    "to_status": decision.requested.value,
                    "relation": relation.value,
                    "failure": decision.failure.value if decision.failure else None,
                    "reason": decision.reason,
                },
            )
        decision.raise_if_rejected()
        return decision

    def _publish(self, event: NotificationEvent) -> None:
        """Hand *event* to the publisher; log and swallow any failure."""
        try:
            self.publisher.publish(event.event_type, event)
        except Exception:
            logger.warning(
                "notification_publish_failed",
                extra={
                    "event_type": event.event_type,
                    "recipient_id": str(event.recipient_id),
                    "entity_id": str(event.entity_id),
                },
                exc_info=True,
            )
