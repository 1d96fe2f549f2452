"""
Status and classification enums (``grant_kernel.domain.statuses``).

Pure value types shared by the domain layer, the ORM models and the DTOs.
ZERO I/O.  The legal moves between these values live in
``grant_kernel.domain.lifecycle``; this module only names them.
"""

from enum import Enum


class UserRole(str, Enum):
    """Platform-wide role of a user.

    Contract: ``relayer`` is the service account that submits on-chain
    payouts; ``admin`` reviews programs.
    """

    USER = "user"
    ADMIN = "admin"
    RELAYER = "relayer"


class LoginType(str, Enum):
    GOOGLE = "google"
    WALLET = "wallet"
    FARCASTER = "farcaster"


class ProgramVisibility(str, Enum):
    PRIVATE = "private"
    RESTRICTED = "restricted"
    PUBLIC = "public"


class ProgramStatus(str, Enum):
    """Program lifecycle status.

    Contract: draft -> under_review -> open -> closed, with decline
    (under_review -> draft) and cancel (draft/under_review -> closed).
    ``closed`` is terminal.
    """

    DRAFT = "draft"
    UNDER_REVIEW = "under_review"
    OPEN = "open"
    CLOSED = "closed"


class ApplicationStatus(str, Enum):
    """Application lifecycle status.

    Contract: submitted -> pending_signature -> in_progress -> completed,
    with rejected and deleted side exits.  completed, rejected and deleted
    are terminal.
    """

    SUBMITTED = "submitted"
    PENDING_SIGNATURE = "pending_signature"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DELETED = "deleted"


class MilestoneStatus(str, Enum):
    """Milestone lifecycle status. ``completed`` is terminal."""

    DRAFT = "draft"
    UNDER_REVIEW = "under_review"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OnchainStatus(str, Enum):
    """Lifecycle of an on-chain program or contract object.

    Contract: tracked independently of the off-chain program/application
    status; completed and cancelled are terminal.
    """

    ACTIVE = "active"
    PAUSED = "paused"
    UPDATED = "updated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    PROGRAM = "program"
    APPLICATION = "application"
    MILESTONE = "milestone"
    CONTRACT = "contract"
    SYSTEM = "system"


class NotificationAction(str, Enum):
    CREATED = "created"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    UPDATED = "updated"
    DELETED = "deleted"


class EntityKind(str, Enum):
    """Entities that carry a lifecycle governed by the transition table."""

    PROGRAM = "program"
    APPLICATION = "application"
    MILESTONE = "milestone"
