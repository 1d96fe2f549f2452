"""
Module: grant_kernel.models.user
Responsibility: ORM persistence for platform users (sponsors, builders,
    admins and the payout relayer).
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - wallet_address is unique (uq_user_wallet_address).
    - role and login_type are restricted to their enum values.

Failure modes:
    - IntegrityError on duplicate wallet_address.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grant_kernel.db.base import TrackedBase
from grant_kernel.db.types import StrEnumType, enum_check
from grant_kernel.domain.statuses import LoginType, UserRole

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import UserInfo


class User(TrackedBase):
    """
    Platform user.

    Contract:
        Users carry no lifecycle of their own; they are referenced as
        sponsor, applicant or notification recipient elsewhere.  Deleting a
        user cascades to everything they own.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("wallet_address", name="uq_user_wallet_address"),
        enum_check("role", UserRole, "ck_user_role"),
        enum_check("login_type", LoginType, "ck_user_login_type"),
        Index("idx_user_role", "role"),
    )

    wallet_address: Mapped[str] = mapped_column(String(256), nullable=False)

    login_type: Mapped[LoginType] = mapped_column(
        StrEnumType(LoginType, 20),
        nullable=False,
        default=LoginType.WALLET,
    )

    role: Mapped[UserRole] = mapped_column(
        StrEnumType(UserRole, 20),
        nullable=False,
        default=UserRole.USER,
    )

    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(100), nullable=True)
    organization_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dto(self) -> UserInfo:
        """Convert ORM model to frozen DTO."""
        from grant_kernel.domain.dtos import UserInfo

        return UserInfo(
            id=self.id,
            wallet_address=self.wallet_address,
            login_type=self.login_type,
            role=self.role,
            email=self.email,
            nickname=self.nickname,
            organization_name=self.organization_name,
        )

    def __repr__(self) -> str:
        return f"<User {self.wallet_address} role={self.role.value}>"
