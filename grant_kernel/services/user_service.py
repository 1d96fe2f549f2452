"""
Service layer for user accounts.

Users are referenced as sponsors, applicants and notification recipients;
the kernel only needs identity, role and login method.  Token issuing and
JWT verification stay with the transport.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select

from grant_kernel.db.types import validate_address
from grant_kernel.domain.actor import Actor
from grant_kernel.domain.dtos import UserInfo
from grant_kernel.domain.statuses import LoginType, UserRole
from grant_kernel.exceptions import (
    DuplicateRecordError,
    InvalidStatusError,
    UnauthorizedActionError,
    UserNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import get_logger
from grant_kernel.models.user import User
from grant_kernel.services.base import BaseService

logger = get_logger("services.user")

PROFILE_FIELDS = frozenset({"email", "nickname", "organization_name", "bio"})


class UserService(BaseService[User]):
    """User writes."""

    def create_user(
        self,
        wallet_address: str,
        login_type: LoginType | str = LoginType.WALLET,
        email: str | None = None,
        nickname: str | None = None,
        organization_name: str | None = None,
        bio: str | None = None,
    ) -> UserInfo:
        """
        Register a user on first login.

        Wallet logins must present a 0x + 40 hex address; social logins
        carry the provider's account identifier.

        Raises:
            DuplicateRecordError: wallet address already registered.
        """
        try:
            login_type = LoginType(login_type)
        except ValueError:
            raise InvalidStatusError(
                "login type", str(login_type), tuple(t.value for t in LoginType)
            ) from None
        if not wallet_address:
            raise ValidationError("Wallet address is required")
        if login_type == LoginType.WALLET:
            wallet_address = validate_address(wallet_address, "wallet_address")

        existing = self.session.execute(
            select(User.id).where(User.wallet_address == wallet_address)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateRecordError("user", "wallet_address", wallet_address)

        user = User(
            wallet_address=wallet_address,
            login_type=login_type,
            email=email,
            nickname=nickname,
            organization_name=organization_name,
            bio=bio,
        )
        self.session.add(user)
        self.session.flush()

        logger.info(
            "user_created",
            extra={"user_id": str(user.id), "login_type": login_type.value},
        )
        return user.to_dto()

    def update_profile(
        self, actor: Actor | None, user_id: UUID, **changes: Any
    ) -> UserInfo:
        """Users edit their own profile; admins may edit anyone's."""
        actor = self.guard.require_authenticated(actor)
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown profile fields: {', '.join(sorted(unknown))}"
            )
        if actor.user_id != user_id and not self.guard.is_admin(actor.user_id):
            raise UnauthorizedActionError("update", "user")

        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        for name, value in changes.items():
            setattr(user, name, value)
        user.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "user_profile_updated",
            extra={"user_id": str(user.id), "fields": sorted(changes)},
        )
        return user.to_dto()

    def set_role(
        self, actor: Actor | None, user_id: UUID, role: UserRole | str
    ) -> UserInfo:
        """
        Grant or revoke the admin / relayer role.  Admin only.

        The caller's admin status is read from the store, not the token.
        """
        actor = self.guard.require_authenticated(actor)
        self.guard.require_admin(actor, "update", "user")
        try:
            role = UserRole(role)
        except ValueError:
            raise InvalidStatusError(
                "user role", str(role), tuple(r.value for r in UserRole)
            ) from None

        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        if user.role == role:
            return user.to_dto()

        previous = user.role
        user.role = role
        user.updated_by_id = actor.user_id
        self.session.flush()

        logger.warning(
            "user_role_changed",
            extra={
                "user_id": str(user.id),
                "from_role": previous.value,
                "to_role": role.value,
                "changed_by": str(actor.user_id),
            },
        )
        return user.to_dto()
