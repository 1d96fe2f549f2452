"""
Pytest fixtures for the grant kernel test suite.

Provides:
- One engine per test session, one rolled-back transaction per test
- Actors (sponsor, builder, admin, relayer, stranger) backed by user rows
- Reference data and lifecycle factories (open program, in-progress
  application, milestones driven to a status)
- A recording publisher and a deterministic clock

Environment Variables:
- DATABASE_URL: database to run against.  Defaults to in-memory SQLite;
  set a PostgreSQL URL to exercise row locking for real.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from grant_kernel.db.engine import build_engine, create_tables, drop_tables
from grant_kernel.domain.actor import Actor
from grant_kernel.domain.clock import DeterministicClock
from grant_kernel.domain.statuses import (
    ApplicationStatus,
    MilestoneStatus,
    UserRole,
)
from grant_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from grant_kernel.models.user import User
from grant_kernel.services import (
    ApplicationService,
    ContractService,
    MilestoneService,
    NotificationPublisher,
    NotificationService,
    OnchainContractInfoService,
    OnchainProgramInfoService,
    ProgramService,
    ReferenceDataService,
    UserService,
)

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def random_address() -> str:
    """0x + 40 hex characters."""
    return "0x" + uuid4().hex + uuid4().hex[:8]


def random_hash() -> str:
    """0x + 64 hex characters."""
    return "0x" + uuid4().hex + uuid4().hex


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def pytest_collection_modifyitems(config, items):
    if get_database_url().startswith("postgresql"):
        return
    skip = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture grant_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "application_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("grant_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine and schema for the whole test session."""
    engine = build_engine(get_database_url())
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def session(db_engine) -> Session:
    """
    Session bound to an outer transaction that is rolled back after the test.

    Services only flush, so nothing a test does survives it.  Savepoints
    opened by the code under test nest inside the outer transaction.
    """
    connection = db_engine.connect()
    transaction = connection.begin()
    db_session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    yield db_session
    db_session.close()
    if transaction.is_active:
        transaction.rollback()
    connection.close()


# =============================================================================
# Collaborators
# =============================================================================


class RecordingPublisher:
    """EventPublisher that keeps every event in memory."""

    def __init__(self):
        self.events = []

    def publish(self, event_type, event):
        self.events.append((event_type, event))

    def of_type(self, event_type):
        return [event for kind, event in self.events if kind == event_type]

    def for_recipient(self, user_id):
        return [event for _, event in self.events if event.recipient_id == user_id]


class FailingPublisher:
    """EventPublisher whose every publish raises."""

    def __init__(self):
        self.calls = 0

    def publish(self, event_type, event):
        self.calls += 1
        raise ConnectionError("notification backend unavailable")


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def failing_publisher():
    return FailingPublisher()


@pytest.fixture
def clock():
    return DeterministicClock()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def user_service(session, publisher, clock):
    return UserService(session, publisher=publisher, clock=clock)


@pytest.fixture
def reference_service(session, publisher, clock):
    return ReferenceDataService(session, publisher=publisher, clock=clock)


@pytest.fixture
def program_service(session, publisher, clock):
    return ProgramService(session, publisher=publisher, clock=clock)


@pytest.fixture
def application_service(session, publisher, clock):
    return ApplicationService(session, publisher=publisher, clock=clock)


@pytest.fixture
def milestone_service(session, publisher, clock):
    return MilestoneService(session, publisher=publisher, clock=clock)


@pytest.fixture
def contract_service(session, publisher, clock):
    return ContractService(session, publisher=publisher, clock=clock)


@pytest.fixture
def onchain_program_service(session, publisher, clock):
    return OnchainProgramInfoService(session, publisher=publisher, clock=clock)


@pytest.fixture
def onchain_contract_service(session, publisher, clock):
    return OnchainContractInfoService(session, publisher=publisher, clock=clock)


@pytest.fixture
def notification_service(session, clock):
    return NotificationService(session, clock=clock)


@pytest.fixture
def inbox_publisher(session):
    """Persisting publisher writing to the notifications table."""
    return NotificationPublisher(session)


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def make_actor(session, user_service):
    """Create a user row and return an Actor for it."""

    def _make(role: UserRole = UserRole.USER, nickname: str | None = None) -> Actor:
        info = user_service.create_user(random_address(), nickname=nickname)
        if role != UserRole.USER:
            session.get(User, info.id).role = role
            session.flush()
        return Actor(user_id=info.id, role=role)

    return _make


@pytest.fixture
def sponsor(make_actor):
    return make_actor(nickname="sponsor")


@pytest.fixture
def builder(make_actor):
    return make_actor(nickname="builder")


@pytest.fixture
def other_builder(make_actor):
    return make_actor(nickname="other-builder")


@pytest.fixture
def admin(make_actor):
    return make_actor(UserRole.ADMIN, nickname="admin")


@pytest.fixture
def relayer(make_actor):
    return make_actor(UserRole.RELAYER, nickname="relayer")


@pytest.fixture
def stranger(make_actor):
    return make_actor(nickname="stranger")


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def network(reference_service, admin):
    return reference_service.create_network(admin, 11155111, "Sepolia")


@pytest.fixture
def token(reference_service, admin, network):
    return reference_service.create_token(
        admin, network.id, "USDC", random_address(), decimals=6
    )


@pytest.fixture
def smart_contract(reference_service, admin, network):
    return reference_service.register_smart_contract(
        admin, network.id, random_address(), "GrantEscrow"
    )


# =============================================================================
# Lifecycle factories
# =============================================================================


@pytest.fixture
def draft_program(program_service, sponsor, network, smart_contract):
    """Draft program that already has its on-chain record."""
    program, _ = program_service.create_program_with_onchain(
        sponsor,
        title="Tooling grant",
        smart_contract_id=smart_contract.id,
        onchain_program_id=1,
        tx=random_hash(),
        network_id=network.id,
        price=Decimal("1000"),
    )
    return program


@pytest.fixture
def open_program(program_service, draft_program, sponsor, admin):
    program_service.submit_for_review(sponsor, draft_program.id)
    return program_service.approve_program(admin, draft_program.id)


@pytest.fixture
def make_application(application_service, open_program, builder):
    """Submit an application, optionally driving it to *status*."""

    def _make(
        status: ApplicationStatus = ApplicationStatus.SUBMITTED,
        applicant: Actor | None = None,
        program_id=None,
    ):
        applicant = applicant or builder
        program_id = program_id or open_program.id
        application = application_service.create_application(
            applicant, program_id, content="proposal"
        )
        sponsor_actor = Actor(user_id=open_program.sponsor_id)
        if status in (ApplicationStatus.PENDING_SIGNATURE, ApplicationStatus.IN_PROGRESS):
            application = application_service.review_application(
                sponsor_actor, application.id, ApplicationStatus.PENDING_SIGNATURE
            )
        if status == ApplicationStatus.IN_PROGRESS:
            application = application_service.review_application(
                sponsor_actor, application.id, ApplicationStatus.IN_PROGRESS
            )
        if status == ApplicationStatus.REJECTED:
            application = application_service.review_application(
                sponsor_actor, application.id, ApplicationStatus.REJECTED, "not a fit"
            )
        if status == ApplicationStatus.DELETED:
            application = application_service.withdraw_application(
                applicant, application.id
            )
        return application

    return _make


@pytest.fixture
def in_progress_application(make_application):
    return make_application(ApplicationStatus.IN_PROGRESS)


@pytest.fixture
def make_milestone(milestone_service, sponsor):
    """Create a milestone and drive it to *status* as the sponsor."""

    def _make(
        application_id,
        status: MilestoneStatus = MilestoneStatus.DRAFT,
        payout: str = "100",
        title: str = "Milestone",
    ):
        milestone = milestone_service.create_milestone(
            sponsor, application_id, title=title, payout=payout
        )
        steps = [
            (MilestoneStatus.UNDER_REVIEW, milestone_service.publish_milestone),
            (MilestoneStatus.IN_PROGRESS, milestone_service.start_milestone),
            (MilestoneStatus.COMPLETED, milestone_service.complete_milestone),
        ]
        order = [MilestoneStatus.DRAFT] + [s for s, _ in steps]
        for target, step in steps:
            if order.index(target) > order.index(MilestoneStatus(status)):
                break
            milestone = step(sponsor, milestone.id)
        return milestone

    return _make
