"""
Tests for the notification side-channel.

Covers:
- NotificationPublisher: inbox row, subscribers, wildcard, failing handler
- Inbox write failure rolls back only its savepoint
- NotificationService: listing, unread count, mark read, delete
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.statuses import NotificationAction, NotificationType
from grant_kernel.exceptions import (
    NotAuthorizedError,
    NotificationNotFoundError,
    UnauthorizedActionError,
)
from grant_kernel.services.application_service import ApplicationService


def make_event(recipient_id, type=NotificationType.SYSTEM, title="Hello"):
    return NotificationEvent(
        type=type,
        action=NotificationAction.CREATED,
        recipient_id=recipient_id,
        entity_id=uuid4(),
        title=title,
        content="Something happened",
        metadata={"source": "test"},
    )


@pytest.fixture
def inbox(inbox_publisher, builder):
    """Three notifications in the builder's inbox."""
    for index in range(3):
        event = make_event(builder.user_id, title=f"Note {index}")
        inbox_publisher.publish(event.event_type, event)


class TestNotificationPublisher:
    def test_stores_row(self, inbox_publisher, notification_service, builder):
        event = make_event(builder.user_id)
        inbox_publisher.publish(event.event_type, event)

        page = notification_service.list_for_user(builder)
        assert page.count == 1
        stored = page.data[0]
        assert stored.title == "Hello"
        assert stored.metadata == {"source": "test"}
        assert stored.read_at is None

    def test_subscribers_and_wildcard(self, inbox_publisher, builder):
        seen = []
        inbox_publisher.subscribe("system.created", lambda kind, e: seen.append(kind))
        inbox_publisher.subscribe("*", lambda kind, e: seen.append("any:" + kind))
        inbox_publisher.subscribe("program.created", lambda kind, e: seen.append("no"))

        event = make_event(builder.user_id)
        inbox_publisher.publish(event.event_type, event)

        assert seen == ["system.created", "any:system.created"]

    def test_unsubscribe(self, inbox_publisher, builder):
        seen = []

        def handler(kind, event):
            seen.append(kind)

        inbox_publisher.subscribe("system.created", handler)
        inbox_publisher.unsubscribe("system.created", handler)
        event = make_event(builder.user_id)
        inbox_publisher.publish(event.event_type, event)
        assert seen == []

    def test_failing_handler_does_not_stop_others(
        self, inbox_publisher, builder, captured_logs
    ):
        seen = []

        def broken(kind, event):
            raise RuntimeError("socket closed")

        inbox_publisher.subscribe("system.created", broken)
        inbox_publisher.subscribe("system.created", lambda kind, e: seen.append(kind))

        event = make_event(builder.user_id)
        inbox_publisher.publish(event.event_type, event)

        assert seen == ["system.created"]
        failures = [
            r for r in captured_logs() if r["message"] == "notification_handler_failed"
        ]
        assert failures[0]["handler"] == "broken"
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_failed_inbox_write_keeps_session_usable(
        self, inbox_publisher, notification_service, builder
    ):
        orphan = make_event(uuid4())
        with pytest.raises(IntegrityError):
            inbox_publisher.publish(orphan.event_type, orphan)

        event = make_event(builder.user_id)
        inbox_publisher.publish(event.event_type, event)
        assert notification_service.unread_count(builder) == 1

    def test_service_events_land_in_inbox(
        self,
        session,
        inbox_publisher,
        notification_service,
        open_program,
        sponsor,
        builder,
    ):
        service = ApplicationService(session, publisher=inbox_publisher)
        service.create_application(builder, open_program.id, content="proposal")

        page = notification_service.list_for_user(
            sponsor, type=NotificationType.APPLICATION
        )
        assert page.count == 1
        assert page.data[0].title == "New Application Received"


class TestInbox:
    def test_anonymous(self, notification_service):
        with pytest.raises(NotAuthorizedError):
            notification_service.unread_count(None)

    def test_list_is_per_recipient(
        self, notification_service, inbox, builder, sponsor
    ):
        assert notification_service.list_for_user(builder).count == 3
        assert notification_service.list_for_user(sponsor).count == 0

    def test_pagination(self, notification_service, inbox, builder):
        page = notification_service.list_for_user(builder, page=2, limit=2)
        assert len(page.data) == 1
        assert page.total_pages == 2
        assert page.has_previous_page
        assert not page.has_next_page

    def test_mark_as_read_keeps_first_stamp(
        self, notification_service, inbox, builder, clock
    ):
        target = notification_service.list_for_user(builder).data[0]
        first = notification_service.mark_as_read(builder, target.id)
        assert first.read_at == clock.now()

        clock.advance(60)
        again = notification_service.mark_as_read(builder, target.id)
        assert again.read_at == first.read_at
        assert notification_service.unread_count(builder) == 2

    def test_unread_only(self, notification_service, inbox, builder):
        target = notification_service.list_for_user(builder).data[0]
        notification_service.mark_as_read(builder, target.id)

        unread = notification_service.list_for_user(builder, unread_only=True)
        assert target.id not in {n.id for n in unread.data}
        assert unread.count == 2

    def test_mark_all_as_read(self, notification_service, inbox, builder):
        assert notification_service.mark_all_as_read(builder) == 3
        assert notification_service.unread_count(builder) == 0
        assert notification_service.mark_all_as_read(builder) == 0

    def test_only_recipient_may_touch(
        self, notification_service, inbox, builder, stranger, admin
    ):
        target = notification_service.list_for_user(builder).data[0]
        with pytest.raises(UnauthorizedActionError):
            notification_service.mark_as_read(stranger, target.id)
        with pytest.raises(UnauthorizedActionError):
            notification_service.delete(admin, target.id)

    def test_delete(self, notification_service, inbox, builder):
        target = notification_service.list_for_user(builder).data[0]
        notification_service.delete(builder, target.id)
        assert notification_service.list_for_user(builder).count == 2

    def test_unknown_notification(self, notification_service, builder, admin):
        with pytest.raises(UnauthorizedActionError):
            notification_service.delete(builder, uuid4())
        with pytest.raises(NotificationNotFoundError):
            notification_service.delete(admin, uuid4())
