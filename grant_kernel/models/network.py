"""
Module: grant_kernel.models.network
Responsibility: Reference data for chains -- networks, the payout tokens
    deployed on them, and the escrow smart contracts the platform uses.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - chain_id is unique across networks (uq_network_chain_id).
    - A token address / contract address is unique within its network.
    - Tokens and smart contracts cascade-delete with their network.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grant_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from grant_kernel.domain.dtos import NetworkInfo, SmartContractInfo, TokenInfo


class Network(TrackedBase):
    """A blockchain network (mainnet or testnet)."""

    __tablename__ = "networks"

    __table_args__ = (
        UniqueConstraint("chain_id", name="uq_network_chain_id"),
    )

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    chain_name: Mapped[str] = mapped_column(String(100), nullable=False)
    mainnet: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    explore_url: Mapped[str | None] = mapped_column(String(256), nullable=True)

    tokens: Mapped[list[Token]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    smart_contracts: Mapped[list[SmartContract]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dto(self) -> NetworkInfo:
        from grant_kernel.domain.dtos import NetworkInfo

        return NetworkInfo(
            id=self.id,
            chain_id=self.chain_id,
            chain_name=self.chain_name,
            mainnet=self.mainnet,
            explore_url=self.explore_url,
        )

    def __repr__(self) -> str:
        return f"<Network {self.chain_name} chain_id={self.chain_id}>"


class Token(TrackedBase):
    """ERC-20 token used to denominate program prices and payouts."""

    __tablename__ = "tokens"

    __table_args__ = (
        UniqueConstraint("network_id", "token_address", name="uq_token_network_address"),
    )

    network_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("networks.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_name: Mapped[str] = mapped_column(String(100), nullable=False)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=18)

    network: Mapped[Network] = relationship(back_populates="tokens")

    def to_dto(self) -> TokenInfo:
        from grant_kernel.domain.dtos import TokenInfo

        return TokenInfo(
            id=self.id,
            network_id=self.network_id,
            token_name=self.token_name,
            token_address=self.token_address,
            decimals=self.decimals,
        )

    def __repr__(self) -> str:
        return f"<Token {self.token_name} {self.token_address}>"


class SmartContract(TrackedBase):
    """Escrow contract deployed on a network."""

    __tablename__ = "smart_contracts"

    __table_args__ = (
        UniqueConstraint("network_id", "address", name="uq_smart_contract_network_address"),
    )

    network_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("networks.id", ondelete="CASCADE"),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    network: Mapped[Network] = relationship(back_populates="smart_contracts")

    def to_dto(self) -> SmartContractInfo:
        from grant_kernel.domain.dtos import SmartContractInfo

        return SmartContractInfo(
            id=self.id,
            network_id=self.network_id,
            address=self.address,
            name=self.name,
        )

    def __repr__(self) -> str:
        return f"<SmartContract {self.name} {self.address}>"
