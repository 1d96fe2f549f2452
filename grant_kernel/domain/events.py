"""
Notification events and the publisher port.

Services emit a ``NotificationEvent`` after a successful write.  The kernel
only depends on the ``EventPublisher`` protocol; the persisted inbox and
in-process subscriber fan-out live in ``services/notification_service.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from grant_kernel.domain.statuses import NotificationAction, NotificationType


@dataclass(frozen=True)
class NotificationEvent:
    """A user-facing notification produced by a state change."""

    type: NotificationType
    action: NotificationAction
    recipient_id: UUID
    entity_id: UUID
    title: str
    content: str
    sender_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def event_type(self) -> str:
        """Routing key, e.g. ``application.submitted``."""
        return f"{self.type.value}.{self.action.value}"


class EventPublisher(Protocol):
    """Fire-and-forget outbound port. Implementations may raise; callers log."""

    def publish(self, event_type: str, event: NotificationEvent) -> None:
        ...


class NullPublisher:
    """Publisher that drops every event."""

    def publish(self, event_type: str, event: NotificationEvent) -> None:
        return None
