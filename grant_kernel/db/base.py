"""
Declarative bases for the grant models.

Every table gets a uuid4 primary key stored as a 36-character string so
the same schema runs on PostgreSQL and SQLite.  Lifecycle entities
(programs, applications, milestones, contracts) extend TrackedBase and
carry server-side ``created_at`` / ``updated_at`` plus the id of the user
who last changed them.

Nothing under models/, services/, selectors/ or domain/ is imported here.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import JSON, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from grant_kernel.db.types import UTCDateTime


class UUIDString(TypeDecorator):
    """UUID bound as its canonical string; ids arriving as text are normalised."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, UUID):
            value = UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: Integer,
        # skills, submitted files, contract snapshots
        dict[str, Any]: JSON,
        list[str]: JSON,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base for rows that move through a lifecycle."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    # set by the service that made the change
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
