"""
Notification side-channel.

``NotificationPublisher`` is the production ``EventPublisher``: it stores
each event as a row in the recipient's inbox and fans it out to in-process
subscribers (e.g. a websocket bridge).  ``NotificationService`` is the
inbox API.

Invariants enforced:
    - The inbox row is written inside a SAVEPOINT; a failure rolls back
      only the savepoint and surfaces to ``BaseService._publish``, which
      logs it.  The primary write is never lost.
    - A failing subscriber is logged and skipped; the others still run.
    - Only the recipient may read, mark or delete a notification.
"""

from collections import defaultdict
from collections.abc import Callable
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from grant_kernel.domain.actor import Actor
from grant_kernel.domain.dtos import NotificationInfo, Page
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.statuses import NotificationType
from grant_kernel.exceptions import NotificationNotFoundError, UnauthorizedActionError
from grant_kernel.logging_config import get_logger
from grant_kernel.models.notification import Notification
from grant_kernel.selectors.notification_selector import NotificationSelector
from grant_kernel.services.base import BaseService

logger = get_logger("services.notification")

Handler = Callable[[str, NotificationEvent], None]

WILDCARD = "*"


class NotificationPublisher:
    """Persisting, fan-out implementation of ``EventPublisher``."""

    def __init__(self, session: Session):
        self.session = session
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Register *handler* for *event_type*, or for everything with ``*``."""
        self._handlers[event_type].append(handler)
        logger.debug(
            "notification_handler_subscribed",
            extra={
                "event_type": event_type,
                "handler": getattr(handler, "__name__", repr(handler)),
            },
        )

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: str, event: NotificationEvent) -> None:
        with self.session.begin_nested():
            row = Notification(
                type=event.type,
                action=event.action,
                recipient_id=event.recipient_id,
                sender_id=event.sender_id,
                entity_id=event.entity_id,
                title=event.title,
                content=event.content,
                metadata_=dict(event.metadata),
            )
            self.session.add(row)
            self.session.flush()

        logger.info(
            "notification_published",
            extra={
                "event_type": event_type,
                "notification_id": str(row.id),
                "recipient_id": str(event.recipient_id),
            },
        )

        handlers = self._handlers.get(event_type, []) + self._handlers.get(WILDCARD, [])
        if not handlers:
            logger.debug("notification_unhandled", extra={"event_type": event_type})
        for handler in handlers:
            try:
                handler(event_type, event)
            except Exception:
                logger.warning(
                    "notification_handler_failed",
                    extra={
                        "event_type": event_type,
                        "handler": getattr(handler, "__name__", repr(handler)),
                    },
                    exc_info=True,
                )


class NotificationService(BaseService[Notification]):
    """A user's notification inbox."""

    def __init__(self, session, publisher=None, clock=None, policy=None):
        super().__init__(session, publisher, clock, policy)
        self.selector = NotificationSelector(session)

    def list_for_user(
        self,
        actor: Actor | None,
        page: int = 1,
        limit: int | None = None,
        unread_only: bool = False,
        type: NotificationType | None = None,
    ) -> Page[NotificationInfo]:
        actor = self.guard.require_authenticated(actor)
        return self.selector.list_for_user(
            actor.user_id, page=page, limit=limit, unread_only=unread_only, type=type
        )

    def unread_count(self, actor: Actor | None) -> int:
        actor = self.guard.require_authenticated(actor)
        return self.selector.unread_count(actor.user_id)

    def mark_as_read(self, actor: Actor | None, notification_id: UUID) -> NotificationInfo:
        """Stamp ``read_at``; an already read notification keeps its stamp."""
        actor = self.guard.require_authenticated(actor)
        notification = self._load_owned(actor, notification_id, "update")
        if notification.read_at is None:
            notification.read_at = self.clock.now()
            self.session.flush()
            logger.info(
                "notification_read",
                extra={"notification_id": str(notification.id)},
            )
        return notification.to_dto()

    def mark_all_as_read(self, actor: Actor | None) -> int:
        """Returns the number of notifications marked."""
        actor = self.guard.require_authenticated(actor)
        result = self.session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == actor.user_id,
                Notification.read_at.is_(None),
            )
            .values(read_at=self.clock.now())
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        logger.info(
            "notifications_read_all",
            extra={"recipient_id": str(actor.user_id), "count": result.rowcount},
        )
        return result.rowcount

    def delete(self, actor: Actor | None, notification_id: UUID) -> None:
        actor = self.guard.require_authenticated(actor)
        notification = self._load_owned(actor, notification_id, "delete")
        self.session.delete(notification)
        self.session.flush()
        logger.info(
            "notification_deleted", extra={"notification_id": str(notification_id)}
        )

    def _load_owned(self, actor: Actor, notification_id: UUID, action: str) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            self.guard.deny_missing(
                actor,
                action,
                "notification",
                NotificationNotFoundError(str(notification_id)),
            )
        if notification.recipient_id != actor.user_id:
            raise UnauthorizedActionError(action, "notification")
        return notification
