"""
Module: grant_kernel.selectors.reference_selector
Responsibility: Read queries for users and chain reference data (networks,
    tokens, smart contracts).
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.domain.dtos import (
    NetworkInfo,
    Page,
    SmartContractInfo,
    TokenInfo,
    UserInfo,
)
from grant_kernel.exceptions import (
    NetworkNotFoundError,
    SmartContractNotFoundError,
    TokenNotFoundError,
    UserNotFoundError,
)
from grant_kernel.models.network import Network, SmartContract, Token
from grant_kernel.models.user import User
from grant_kernel.selectors.base import BaseSelector


class ReferenceSelector(BaseSelector[Network]):
    """Read-only user and chain reference queries."""

    def get_user(self, user_id: UUID) -> UserInfo:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user.to_dto()

    def get_user_by_wallet(self, wallet_address: str) -> UserInfo | None:
        user = self.session.execute(
            select(User).where(User.wallet_address == wallet_address)
        ).scalar_one_or_none()
        return user.to_dto() if user is not None else None

    def get_network(self, network_id: UUID) -> NetworkInfo:
        network = self.session.get(Network, network_id)
        if network is None:
            raise NetworkNotFoundError(str(network_id))
        return network.to_dto()

    def get_network_by_chain_id(self, chain_id: int) -> NetworkInfo | None:
        network = self.session.execute(
            select(Network).where(Network.chain_id == chain_id)
        ).scalar_one_or_none()
        return network.to_dto() if network is not None else None

    def list_networks(
        self, page: int = 1, limit: int | None = None, mainnet: bool | None = None
    ) -> Page[NetworkInfo]:
        stmt = select(Network)
        if mainnet is not None:
            stmt = stmt.where(Network.mainnet == mainnet)
        stmt = stmt.order_by(Network.chain_id)
        return self._paginate(stmt, Network.to_dto, page, limit)

    def get_token(self, token_id: UUID) -> TokenInfo:
        token = self.session.get(Token, token_id)
        if token is None:
            raise TokenNotFoundError(str(token_id))
        return token.to_dto()

    def list_tokens(
        self, network_id: UUID | None = None, page: int = 1, limit: int | None = None
    ) -> Page[TokenInfo]:
        stmt = select(Token)
        if network_id is not None:
            stmt = stmt.where(Token.network_id == network_id)
        stmt = stmt.order_by(Token.token_name, Token.id)
        return self._paginate(stmt, Token.to_dto, page, limit)

    def get_smart_contract(self, smart_contract_id: UUID) -> SmartContractInfo:
        contract = self.session.get(SmartContract, smart_contract_id)
        if contract is None:
            raise SmartContractNotFoundError(str(smart_contract_id))
        return contract.to_dto()

    def list_smart_contracts(
        self, network_id: UUID | None = None, page: int = 1, limit: int | None = None
    ) -> Page[SmartContractInfo]:
        stmt = select(SmartContract)
        if network_id is not None:
            stmt = stmt.where(SmartContract.network_id == network_id)
        stmt = stmt.order_by(SmartContract.name, SmartContract.id)
        return self._paginate(stmt, SmartContract.to_dto, page, limit)
