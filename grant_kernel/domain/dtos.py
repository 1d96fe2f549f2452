"""
Data transfer objects returned by services and selectors.

Frozen dataclasses with no ORM dependencies.  Models convert themselves
with ``to_dto()``; callers above the kernel never see ORM instances.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import UUID

from grant_kernel.domain.statuses import (
    ApplicationStatus,
    LoginType,
    MilestoneStatus,
    NotificationAction,
    NotificationType,
    OnchainStatus,
    ProgramStatus,
    ProgramVisibility,
    UserRole,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One page of a paginated query.

    ``count`` is the total number of matching rows, not the page length.
    """

    data: tuple[T, ...]
    count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, data: list[T], count: int, page: int, limit: int) -> "Page[T]":
        total_pages = math.ceil(count / limit) if limit > 0 else 0
        return cls(
            data=tuple(data),
            count=count,
            total_pages=total_pages,
            current_page=page,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


@dataclass(frozen=True)
class UserInfo:
    id: UUID
    wallet_address: str
    login_type: LoginType
    role: UserRole
    email: str | None
    nickname: str | None
    organization_name: str | None


@dataclass(frozen=True)
class NetworkInfo:
    id: UUID
    chain_id: int
    chain_name: str
    mainnet: bool
    explore_url: str | None


@dataclass(frozen=True)
class TokenInfo:
    id: UUID
    network_id: UUID
    token_name: str
    token_address: str
    decimals: int


@dataclass(frozen=True)
class SmartContractInfo:
    id: UUID
    network_id: UUID
    address: str
    name: str


@dataclass(frozen=True)
class ProgramInfo:
    id: UUID
    title: str
    description: str | None
    skills: tuple[str, ...]
    deadline: datetime | None
    invited_members: tuple[str, ...]
    visibility: ProgramVisibility
    status: ProgramStatus
    sponsor_id: UUID
    network_id: UUID | None
    token_id: UUID | None
    price: Decimal | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == ProgramStatus.OPEN


@dataclass(frozen=True)
class ApplicationInfo:
    id: UUID
    program_id: UUID
    applicant_id: UUID
    status: ApplicationStatus
    title: str | None
    content: str | None
    rejected_reason: str | None
    picked: bool
    chatroom_message_id: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class MilestoneInfo:
    id: UUID
    application_id: UUID
    program_id: UUID
    sponsor_id: UUID
    title: str
    description: str | None
    payout: Decimal
    deadline: datetime | None
    files: tuple[str, ...]
    status: MilestoneStatus
    payout_tx: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ContractInfo:
    id: UUID
    program_id: UUID
    application_id: UUID
    sponsor_id: UUID
    applicant_id: UUID
    smart_contract_id: UUID
    onchain_contract_id: int | None
    snapshot_contents: dict[str, Any] = field(hash=False, compare=False)
    snapshot_hash: str | None = None
    builder_signature: str | None = None
    created_at: datetime | None = None

    @property
    def is_signed_by_builder(self) -> bool:
        return bool(self.builder_signature)


@dataclass(frozen=True)
class OnchainProgramRecord:
    id: UUID
    program_id: UUID
    network_id: UUID
    smart_contract_id: UUID
    onchain_program_id: int
    status: OnchainStatus
    tx: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class OnchainContractRecord:
    id: UUID
    program_id: UUID
    application_id: UUID | None
    sponsor_id: UUID
    applicant_id: UUID
    smart_contract_id: UUID
    onchain_contract_id: int
    status: OnchainStatus
    tx: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class NotificationInfo:
    id: UUID
    type: NotificationType
    action: NotificationAction
    recipient_id: UUID
    entity_id: UUID
    title: str
    content: str
    metadata: dict[str, Any] = field(hash=False, compare=False)
    read_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
