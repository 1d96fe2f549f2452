"""
Actor identity and actor-to-entity relations.

The transport layer authenticates the bearer token and hands the kernel an
``Actor``; the kernel never decodes tokens.  ``None`` stands for an
anonymous request.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from grant_kernel.domain.statuses import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    user_id: UUID
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_relayer(self) -> bool:
        return self.role == UserRole.RELAYER


class ActorRelation(str, Enum):
    """How an actor relates to one specific entity.

    Contract:
        OWNER         -- program sponsor; application applicant; milestone
                         sponsor (the milestone's definer and approver).
        COUNTERPARTY  -- the other side: program sponsor for an application,
                         applicant for a milestone.
        ADMIN         -- platform admin with no ownership of the entity.
        RELAYER       -- payout relayer service account.
        STRANGER      -- anything else, including unknown ids.

    Ownership wins over role: an admin who sponsors a program is OWNER of it.
    """

    OWNER = "owner"
    COUNTERPARTY = "counterparty"
    ADMIN = "admin"
    RELAYER = "relayer"
    STRANGER = "stranger"
