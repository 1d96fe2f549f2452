"""
On-chain record services.

Responsibility:
    Persist the evidentiary link between a program or contract and the
    smart-contract object that represents it on chain, and track that
    object's status (active, paused, updated, completed, cancelled).

Architecture position:
    Kernel > Services.

Invariants enforced:
    - One OnchainProgramInfo per program.
    - ``tx`` is 0x + 64 hex characters.
    - The smart contract must be registered on the record's network.
    - On-chain status follows ``ONCHAIN_TRANSITIONS``; completed and
      cancelled are terminal.  These statuses never drive the program or
      application lifecycle.
"""

from uuid import UUID

from sqlalchemy import select

from grant_kernel.db.types import validate_hash
from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.dtos import OnchainContractRecord, OnchainProgramRecord
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.lifecycle import validate_onchain_transition
from grant_kernel.domain.statuses import (
    NotificationAction,
    NotificationType,
    OnchainStatus,
)
from grant_kernel.exceptions import (
    ApplicationNotFoundError,
    DuplicateRecordError,
    OnchainContractInfoNotFoundError,
    OnchainProgramInfoNotFoundError,
    ProgramNotFoundError,
    SmartContractNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import get_logger
from grant_kernel.models.application import Application
from grant_kernel.models.contract import Contract
from grant_kernel.models.network import SmartContract
from grant_kernel.models.onchain import OnchainContractInfo, OnchainProgramInfo
from grant_kernel.models.program import Program
from grant_kernel.services.base import BaseService

logger = get_logger("services.onchain")

RECORDERS = frozenset(
    {ActorRelation.OWNER, ActorRelation.ADMIN, ActorRelation.RELAYER}
)
REMOVERS = frozenset({ActorRelation.OWNER, ActorRelation.ADMIN})


def _smart_contract_on(session, smart_contract_id: UUID, network_id: UUID | None):
    smart_contract = session.get(SmartContract, smart_contract_id)
    if smart_contract is None:
        raise SmartContractNotFoundError(str(smart_contract_id))
    if network_id is not None and smart_contract.network_id != network_id:
        raise ValidationError("Smart contract is not deployed on this network")
    return smart_contract


class OnchainProgramInfoService(BaseService[OnchainProgramInfo]):
    """Writes for the on-chain twin of a program."""

    def record(
        self,
        actor: Actor | None,
        program_id: UUID,
        network_id: UUID,
        smart_contract_id: UUID,
        onchain_program_id: int,
        tx: str,
    ) -> OnchainProgramRecord:
        """
        Record the on-chain program created for *program_id*.

        Sponsor, relayer or admin.  A program has at most one record.
        """
        actor = self.guard.require_authenticated(actor)
        program = self._load_for_update(Program, program_id)
        if program is None:
            self.guard.deny_missing(
                actor, "record", "program", ProgramNotFoundError(str(program_id))
            )
        relation = self.guard.relation_to_program(actor, program)
        self.guard.require(relation, RECORDERS, "record", "program")

        tx = validate_hash(tx, "tx")
        existing = self.session.execute(
            select(OnchainProgramInfo.id).where(OnchainProgramInfo.program_id == program.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateRecordError("onchain program info", "program_id", str(program.id))
        _smart_contract_on(self.session, smart_contract_id, network_id)

        info = OnchainProgramInfo(
            program_id=program.id,
            network_id=network_id,
            smart_contract_id=smart_contract_id,
            onchain_program_id=onchain_program_id,
            tx=tx,
        )
        self.session.add(info)
        self.session.flush()

        logger.info(
            "onchain_program_recorded",
            extra={
                "program_id": str(program.id),
                "onchain_program_id": onchain_program_id,
                "tx": tx,
            },
        )
        return info.to_dto()

    def update_status(
        self,
        actor: Actor | None,
        info_id: UUID,
        status: OnchainStatus | str,
        tx: str | None = None,
    ) -> OnchainProgramRecord:
        """Follow the on-chain object's status; *tx* replaces the last hash."""
        actor = self.guard.require_authenticated(actor)
        info = self._load(actor, info_id, "update")
        relation = self.guard.relation_to_program(actor, info.program)
        self.guard.require(relation, RECORDERS, "update", "program")
        if tx is not None:
            tx = validate_hash(tx, "tx")

        if not validate_onchain_transition("onchain program info", info.status, status):
            return info.to_dto()
        previous = info.status
        info.status = OnchainStatus(status)
        if tx is not None:
            info.tx = tx
        self.session.flush()

        logger.info(
            "onchain_program_status_changed",
            extra={
                "info_id": str(info.id),
                "from_status": previous.value,
                "to_status": info.status.value,
            },
        )
        return info.to_dto()

    def delete(self, actor: Actor | None, info_id: UUID) -> None:
        actor = self.guard.require_authenticated(actor)
        info = self._load(actor, info_id, "delete")
        relation = self.guard.relation_to_program(actor, info.program)
        self.guard.require(relation, REMOVERS, "delete", "program")

        self.session.delete(info)
        self.session.flush()
        logger.info("onchain_program_deleted", extra={"info_id": str(info_id)})

    def _load(self, actor: Actor, info_id: UUID, action: str) -> OnchainProgramInfo:
        info = self._load_for_update(OnchainProgramInfo, info_id)
        if info is None:
            self.guard.deny_missing(
                actor, action, "program", OnchainProgramInfoNotFoundError(str(info_id))
            )
        return info


class OnchainContractInfoService(BaseService[OnchainContractInfo]):
    """Writes for the on-chain twin of a sponsor/builder contract."""

    def record(
        self,
        actor: Actor | None,
        program_id: UUID,
        smart_contract_id: UUID,
        onchain_contract_id: int,
        tx: str,
        application_id: UUID | None = None,
        applicant_id: UUID | None = None,
    ) -> OnchainContractRecord:
        """
        Record a contract the sponsor signed on chain.

        With *application_id* the applicant is taken from the application
        and the off-chain Contract, if any, is linked to
        *onchain_contract_id*.  The applicant is notified.
        """
        actor = self.guard.require_authenticated(actor)
        program = self.session.get(Program, program_id)
        if program is None:
            self.guard.deny_missing(
                actor, "record", "contract", ProgramNotFoundError(str(program_id))
            )
        relation = self.guard.relation_to_program(actor, program)
        self.guard.require(relation, RECORDERS, "record", "contract")

        tx = validate_hash(tx, "tx")
        _smart_contract_on(self.session, smart_contract_id, None)

        application = None
        if application_id is not None:
            application = self.session.get(Application, application_id)
            if application is None or application.program_id != program.id:
                raise ApplicationNotFoundError(str(application_id))
            applicant_id = application.applicant_id
        if applicant_id is None:
            raise ValidationError("applicant_id or application_id is required")

        info = OnchainContractInfo(
            program_id=program.id,
            application_id=application.id if application is not None else None,
            sponsor_id=program.sponsor_id,
            applicant_id=applicant_id,
            smart_contract_id=smart_contract_id,
            onchain_contract_id=onchain_contract_id,
            tx=tx,
        )
        self.session.add(info)

        if application is not None:
            contract = self.session.execute(
                select(Contract).where(Contract.application_id == application.id)
            ).scalar_one_or_none()
            if contract is not None:
                contract.onchain_contract_id = onchain_contract_id
        self.session.flush()

        logger.info(
            "onchain_contract_recorded",
            extra={
                "program_id": str(program.id),
                "application_id": str(application_id) if application_id else None,
                "onchain_contract_id": onchain_contract_id,
            },
        )
        self._publish(
            NotificationEvent(
                type=NotificationType.CONTRACT,
                action=NotificationAction.COMPLETED,
                recipient_id=applicant_id,
                sender_id=actor.user_id,
                entity_id=info.id,
                title="Contract Signed by Sponsor",
                content="The sponsor has signed the contract.",
                metadata={"program_id": str(program.id)},
            )
        )
        return info.to_dto()

    def update_status(
        self,
        actor: Actor | None,
        info_id: UUID,
        status: OnchainStatus | str,
        tx: str | None = None,
    ) -> OnchainContractRecord:
        actor = self.guard.require_authenticated(actor)
        info, relation = self._load(actor, info_id, "update")
        self.guard.require(relation, RECORDERS, "update", "contract")
        if tx is not None:
            tx = validate_hash(tx, "tx")

        if not validate_onchain_transition("onchain contract info", info.status, status):
            return info.to_dto()
        previous = info.status
        info.status = OnchainStatus(status)
        if tx is not None:
            info.tx = tx
        self.session.flush()

        logger.info(
            "onchain_contract_status_changed",
            extra={
                "info_id": str(info.id),
                "from_status": previous.value,
                "to_status": info.status.value,
            },
        )
        return info.to_dto()

    def delete(self, actor: Actor | None, info_id: UUID) -> None:
        actor = self.guard.require_authenticated(actor)
        info, relation = self._load(actor, info_id, "delete")
        self.guard.require(relation, REMOVERS, "delete", "contract")

        self.session.delete(info)
        self.session.flush()
        logger.info("onchain_contract_deleted", extra={"info_id": str(info_id)})

    def _load(
        self, actor: Actor, info_id: UUID, action: str
    ) -> tuple[OnchainContractInfo, ActorRelation]:
        info = self._load_for_update(OnchainContractInfo, info_id)
        if info is None:
            self.guard.deny_missing(
                actor, action, "contract", OnchainContractInfoNotFoundError(str(info_id))
            )
        program = self.session.get(Program, info.program_id)
        return info, self.guard.relation_to_program(actor, program)
