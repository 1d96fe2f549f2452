"""
Chain reference data: networks, tokens and registered smart contracts.

Writes are admin-only; the admin role is checked against the store.
Deleting a network removes its tokens and smart contracts through the
foreign-key cascade.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.db.types import validate_address
from grant_kernel.domain.actor import Actor
from grant_kernel.domain.dtos import NetworkInfo, SmartContractInfo, TokenInfo
from grant_kernel.exceptions import (
    DuplicateRecordError,
    NetworkNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import get_logger
from grant_kernel.models.network import Network, SmartContract, Token
from grant_kernel.services.base import BaseService

logger = get_logger("services.reference_data")


class ReferenceDataService(BaseService[Network]):
    """Admin maintenance of chain reference data."""

    def create_network(
        self,
        actor: Actor | None,
        chain_id: int,
        chain_name: str,
        mainnet: bool = False,
        explore_url: str | None = None,
    ) -> NetworkInfo:
        actor = self.guard.require_authenticated(actor)
        self.guard.require_admin(actor, "create", "network")
        if chain_id <= 0:
            raise ValidationError("chain_id must be a positive integer")

        existing = self.session.execute(
            select(Network.id).where(Network.chain_id == chain_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateRecordError("network", "chain_id", str(chain_id))

        network = Network(
            chain_id=chain_id,
            chain_name=chain_name,
            mainnet=mainnet,
            explore_url=explore_url,
        )
        self.session.add(network)
        self.session.flush()
        logger.info(
            "network_created",
            extra={"network_id": str(network.id), "chain_id": chain_id},
        )
        return network.to_dto()

    def create_token(
        self,
        actor: Actor | None,
        network_id: UUID,
        token_name: str,
        token_address: str,
        decimals: int = 18,
    ) -> TokenInfo:
        actor = self.guard.require_authenticated(actor)
        self.guard.require_admin(actor, "create", "token")
        network = self._network(network_id)
        token_address = validate_address(token_address, "token_address")
        if not 0 <= decimals <= 36:
            raise ValidationError("decimals must be between 0 and 36")

        duplicate = self.session.execute(
            select(Token.id).where(
                Token.network_id == network.id,
                Token.token_address == token_address,
            )
        ).scalar_one_or_none()
        if duplicate is not None:
            raise DuplicateRecordError("token", "token_address", token_address)

        token = Token(
            network_id=network.id,
            token_name=token_name,
            token_address=token_address,
            decimals=decimals,
        )
        self.session.add(token)
        self.session.flush()
        logger.info(
            "token_created",
            extra={"token_id": str(token.id), "network_id": str(network.id)},
        )
        return token.to_dto()

    def register_smart_contract(
        self,
        actor: Actor | None,
        network_id: UUID,
        address: str,
        name: str,
    ) -> SmartContractInfo:
        actor = self.guard.require_authenticated(actor)
        self.guard.require_admin(actor, "create", "smart contract")
        network = self._network(network_id)
        address = validate_address(address, "address")

        duplicate = self.session.execute(
            select(SmartContract.id).where(
                SmartContract.network_id == network.id,
                SmartContract.address == address,
            )
        ).scalar_one_or_none()
        if duplicate is not None:
            raise DuplicateRecordError("smart contract", "address", address)

        contract = SmartContract(network_id=network.id, address=address, name=name)
        self.session.add(contract)
        self.session.flush()
        logger.info(
            "smart_contract_registered",
            extra={"smart_contract_id": str(contract.id), "network_id": str(network.id)},
        )
        return contract.to_dto()

    def delete_network(self, actor: Actor | None, network_id: UUID) -> None:
        actor = self.guard.require_authenticated(actor)
        self.guard.require_admin(actor, "delete", "network")
        network = self._network(network_id)

        self.session.delete(network)
        self.session.flush()
        logger.warning("network_deleted", extra={"network_id": str(network_id)})

    def _network(self, network_id: UUID) -> Network:
        network = self.session.get(Network, network_id)
        if network is None:
            raise NetworkNotFoundError(str(network_id))
        return network
