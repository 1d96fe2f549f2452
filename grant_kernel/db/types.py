"""
Module: grant_kernel.db.types
Responsibility: Column types and validation helpers for on-chain values.
    Centralizes amount, hash and address handling so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, services/
    and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for token amounts.  TokenAmount stores a canonical decimal
      string and hands back Decimal; float input is rejected.
    - Hashes (tx hashes, snapshot hashes) are 0x + 64 hex characters.
    - Addresses (tokens, smart contracts, wallets) are 0x + 40 hex characters.

Failure modes:
    - InvalidAmountError / InvalidHashError / InvalidAddressError from the
      validate_* helpers.
    - ValueError from the column types if a caller bypasses validation.

UTCDateTime keeps timestamps timezone-aware on every backend.
"""

import re
from datetime import timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.types import TypeDecorator

from grant_kernel.exceptions import (
    InvalidAddressError,
    InvalidAmountError,
    InvalidHashError,
)

HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# uint256 has at most 78 decimal digits; leave room for sign and point
AMOUNT_LENGTH = 80


def validate_hash(value: str, field: str = "hash") -> str:
    """Return *value* unchanged if it is 0x + 64 hex, else raise InvalidHashError."""
    if not isinstance(value, str) or not HASH_PATTERN.match(value):
        raise InvalidHashError(field, str(value))
    return value


def validate_address(value: str, field: str = "address") -> str:
    """Return *value* unchanged if it is 0x + 40 hex, else raise InvalidAddressError."""
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise InvalidAddressError(field, str(value))
    return value


def parse_amount(value: object, field: str = "amount") -> Decimal:
    """
    Parse a token amount from str, int or Decimal.

    Floats are refused outright: a float has already lost precision by the
    time it reaches us.

    Raises:
        InvalidAmountError: not a finite, non-negative decimal.
    """
    if isinstance(value, (float, bool)) or value is None:
        raise InvalidAmountError(field, value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmountError(field, value) from None
    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(field, value)
    return amount


def format_amount(value: Decimal) -> str:
    """Canonical string form: plain notation, no exponent, no trailing zeros."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


class TokenAmount(TypeDecorator):
    """
    Decimal token amount stored as a decimal string.

    Contract:
        Python side is always Decimal; database side is the canonical string
        produced by format_amount().  Precision is unbounded, so 18-decimal
        token values round-trip exactly.
    """

    impl = String(AMOUNT_LENGTH)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise ValueError("TokenAmount does not accept float values")
        return format_amount(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class StrEnumType(TypeDecorator):
    """
    String column that round-trips a str Enum.

    Contract:
        Binds the member's value; loads the member back.  Unknown values
        raise ValueError on bind so bad statuses never reach the table.
    """

    impl = String(32)
    cache_ok = True

    def __init__(self, enum_class: type[Enum], length: int = 32):
        super().__init__(length)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


def enum_check(column: str, enum_class: type[Enum], name: str) -> CheckConstraint:
    """CHECK constraint restricting *column* to the values of *enum_class*."""
    values = ", ".join(f"'{member.value}'" for member in enum_class)
    return CheckConstraint(f"{column} IN ({values})", name=name)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp, always handed back in UTC.

    SQLite drops the offset on storage; naive values read back are UTC by
    construction and get ``tzinfo`` reattached.  Naive values bound from
    Python are taken as UTC as well.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
