"""
Module: grant_kernel.models.notification
Responsibility: Persisted notification inbox, one row per recipient.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - type and action are restricted to their enum values.
    - Rows cascade-delete with the recipient.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grant_kernel.db.base import TrackedBase, UUIDString
from grant_kernel.db.types import StrEnumType, UTCDateTime, enum_check
from grant_kernel.domain.statuses import NotificationAction, NotificationType

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import NotificationInfo


class Notification(TrackedBase):
    """A message in one user's inbox."""

    __tablename__ = "notifications"

    __table_args__ = (
        enum_check("type", NotificationType, "ck_notification_type"),
        enum_check("action", NotificationAction, "ck_notification_action"),
        Index("idx_notification_recipient_read", "recipient_id", "read_at"),
    )

    type: Mapped[NotificationType] = mapped_column(
        StrEnumType(NotificationType, 20), nullable=False
    )
    action: Mapped[NotificationAction] = mapped_column(
        StrEnumType(NotificationAction, 20), nullable=False
    )
    recipient_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    # Id of the program / application / milestone / contract concerned
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    read_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def to_dto(self) -> NotificationInfo:
        from grant_kernel.domain.dtos import NotificationInfo

        return NotificationInfo(
            id=self.id,
            type=self.type,
            action=self.action,
            recipient_id=self.recipient_id,
            entity_id=self.entity_id,
            title=self.title,
            content=self.content,
            metadata=dict(self.metadata_ or {}),
            read_at=self.read_at,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Notification {self.type.value}.{self.action.value} to={self.recipient_id}>"
