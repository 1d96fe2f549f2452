"""
Module: grant_kernel.selectors.contract_selector
Responsibility: Read queries for off-chain contracts and on-chain contract
    records.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.domain.dtos import ContractInfo, OnchainContractRecord, Page
from grant_kernel.domain.statuses import OnchainStatus
from grant_kernel.exceptions import ContractNotFoundError, OnchainContractInfoNotFoundError
from grant_kernel.models.contract import Contract
from grant_kernel.models.onchain import OnchainContractInfo
from grant_kernel.selectors.base import BaseSelector


class ContractSelector(BaseSelector[Contract]):
    """Read-only contract queries."""

    def get_by_id(self, contract_id: UUID) -> ContractInfo:
        """
        Raises:
            ContractNotFoundError: No contract with this id.
        """
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract.to_dto()

    def get_by_application(self, application_id: UUID) -> ContractInfo | None:
        contract = self.session.execute(
            select(Contract).where(Contract.application_id == application_id)
        ).scalar_one_or_none()
        return contract.to_dto() if contract is not None else None

    def list_contracts(
        self,
        page: int = 1,
        limit: int | None = None,
        program_id: UUID | None = None,
        applicant_id: UUID | None = None,
        sponsor_id: UUID | None = None,
    ) -> Page[ContractInfo]:
        stmt = select(Contract)
        if program_id is not None:
            stmt = stmt.where(Contract.program_id == program_id)
        if applicant_id is not None:
            stmt = stmt.where(Contract.applicant_id == applicant_id)
        if sponsor_id is not None:
            stmt = stmt.where(Contract.sponsor_id == sponsor_id)
        stmt = stmt.order_by(Contract.created_at.desc(), Contract.id)
        return self._paginate(stmt, Contract.to_dto, page, limit)

    def get_onchain_contract(self, info_id: UUID) -> OnchainContractRecord:
        """
        Raises:
            OnchainContractInfoNotFoundError: No record with this id.
        """
        info = self.session.get(OnchainContractInfo, info_id)
        if info is None:
            raise OnchainContractInfoNotFoundError(str(info_id))
        return info.to_dto()

    def list_onchain_contracts(
        self,
        page: int = 1,
        limit: int | None = None,
        program_id: UUID | None = None,
        application_id: UUID | None = None,
        status: OnchainStatus | None = None,
    ) -> Page[OnchainContractRecord]:
        stmt = select(OnchainContractInfo)
        if program_id is not None:
            stmt = stmt.where(OnchainContractInfo.program_id == program_id)
        if application_id is not None:
            stmt = stmt.where(OnchainContractInfo.application_id == application_id)
        if status is not None:
            stmt = stmt.where(OnchainContractInfo.status == status)
        stmt = stmt.order_by(OnchainContractInfo.created_at.desc(), OnchainContractInfo.id)
        return self._paginate(stmt, OnchainContractInfo.to_dto, page, limit)
