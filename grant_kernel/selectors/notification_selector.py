"""
Module: grant_kernel.selectors.notification_selector
Responsibility: Inbox queries -- a user's notifications and unread count.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import func, select

from grant_kernel.domain.dtos import NotificationInfo, Page
from grant_kernel.domain.statuses import NotificationType
from grant_kernel.models.notification import Notification
from grant_kernel.selectors.base import BaseSelector


class NotificationSelector(BaseSelector[Notification]):
    """Read-only inbox queries."""

    def list_for_user(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int | None = None,
        unread_only: bool = False,
        type: NotificationType | None = None,
    ) -> Page[NotificationInfo]:
        stmt = select(Notification).where(Notification.recipient_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        if type is not None:
            stmt = stmt.where(Notification.type == type)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id)
        return self._paginate(stmt, Notification.to_dto, page, limit)

    def unread_count(self, user_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.read_at.is_(None),
            )
        ).scalar_one()
