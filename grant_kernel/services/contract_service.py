"""
ContractService -- off-chain contract snapshots between sponsor and builder.

Responsibility:
    The sponsor sends a contract snapshot for an accepted application; the
    builder signs it.  Signed snapshots are immutable.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - At most one contract per application.
    - Contracts are only issued for applications awaiting signature or
      in progress.
    - ``snapshot_hash`` is 0x + 64 hex characters when present.
    - After the builder signs, snapshot fields cannot change and the
      contract cannot be deleted.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select

from grant_kernel.db.types import validate_hash
from grant_kernel.domain.actor import Actor, ActorRelation
from grant_kernel.domain.dtos import ContractInfo
from grant_kernel.domain.events import NotificationEvent
from grant_kernel.domain.statuses import (
    ApplicationStatus,
    NotificationAction,
    NotificationType,
)
from grant_kernel.exceptions import (
    ApplicationNotFoundError,
    ContractAlreadySignedError,
    ContractNotFoundError,
    DuplicateRecordError,
    FieldNotEditableError,
    InvalidStatusError,
    SmartContractNotFoundError,
    ValidationError,
)
from grant_kernel.logging_config import get_logger
from grant_kernel.models.application import Application
from grant_kernel.models.contract import Contract
from grant_kernel.models.network import SmartContract
from grant_kernel.services.base import BaseService

logger = get_logger("services.contract")

CONTRACTABLE_STATUSES = (
    ApplicationStatus.PENDING_SIGNATURE,
    ApplicationStatus.IN_PROGRESS,
)

SPONSOR = frozenset({ActorRelation.COUNTERPARTY})
BUILDER = frozenset({ActorRelation.OWNER})


class ContractService(BaseService[Contract]):
    """Contract writes."""

    def create_contract(
        self,
        actor: Actor | None,
        application_id: UUID,
        smart_contract_id: UUID,
        snapshot_contents: dict[str, Any] | None = None,
        snapshot_hash: str | None = None,
    ) -> ContractInfo:
        """
        Issue a contract for *application_id*.  Program sponsor only.

        Raises:
            UnauthorizedActionError: actor is not the program sponsor.
            InvalidStatusError: application is not awaiting signature or
                in progress.
            DuplicateRecordError: the application already has a contract.
        """
        actor = self.guard.require_authenticated(actor)
        application = self._load_for_update(Application, application_id)
        if application is None:
            self.guard.deny_missing(
                actor, "create", "contract", ApplicationNotFoundError(str(application_id))
            )
        relation = self.guard.relation_to_application(actor, application)
        self.guard.require(relation, SPONSOR, "create", "contract")

        if application.status not in CONTRACTABLE_STATUSES:
            raise InvalidStatusError(
                "application",
                application.status.value,
                tuple(s.value for s in CONTRACTABLE_STATUSES),
            )
        existing = self.session.execute(
            select(Contract.id).where(Contract.application_id == application.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateRecordError("contract", "application_id", str(application.id))
        if self.session.get(SmartContract, smart_contract_id) is None:
            raise SmartContractNotFoundError(str(smart_contract_id))
        if snapshot_hash is not None:
            snapshot_hash = validate_hash(snapshot_hash, "snapshot_hash")

        contract = Contract(
            program_id=application.program_id,
            application_id=application.id,
            sponsor_id=application.program.sponsor_id,
            applicant_id=application.applicant_id,
            smart_contract_id=smart_contract_id,
            snapshot_contents=dict(snapshot_contents or {}),
            snapshot_hash=snapshot_hash,
        )
        self.session.add(contract)
        self.session.flush()

        logger.info(
            "contract_created",
            extra={"contract_id": str(contract.id), "application_id": str(application.id)},
        )
        self._notify(
            contract,
            recipient_id=contract.applicant_id,
            sender_id=actor.user_id,
            action=NotificationAction.CREATED,
            title="New Contract Received",
            content="A sponsor has sent you a contract to sign.",
        )
        return contract.to_dto()

    def update_contract(
        self,
        actor: Actor | None,
        contract_id: UUID,
        snapshot_contents: dict[str, Any] | None = None,
        snapshot_hash: str | None = None,
    ) -> ContractInfo:
        """Replace the snapshot before the builder signs.  Sponsor only."""
        actor = self.guard.require_authenticated(actor)
        contract, relation = self._load(actor, contract_id, "update")
        self.guard.require(relation, SPONSOR, "update", "contract")

        fields = tuple(
            name
            for name, value in (
                ("snapshot_contents", snapshot_contents),
                ("snapshot_hash", snapshot_hash),
            )
            if value is not None
        )
        if contract.builder_signature and fields:
            raise FieldNotEditableError("contract", fields, "signed")

        if snapshot_contents is not None:
            contract.snapshot_contents = dict(snapshot_contents)
        if snapshot_hash is not None:
            contract.snapshot_hash = validate_hash(snapshot_hash, "snapshot_hash")
        contract.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "contract_updated",
            extra={"contract_id": str(contract.id), "fields": list(fields)},
        )
        return contract.to_dto()

    def sign_contract(
        self, actor: Actor | None, contract_id: UUID, builder_signature: str
    ) -> ContractInfo:
        """
        Builder signs the contract.

        Re-submitting the stored signature is a no-op; a different
        signature raises ContractAlreadySignedError.
        """
        actor = self.guard.require_authenticated(actor)
        contract, relation = self._load(actor, contract_id, "sign")
        self.guard.require(relation, BUILDER, "sign", "contract")
        if not builder_signature or not builder_signature.strip():
            raise ValidationError("Builder signature is required")

        if contract.builder_signature:
            if contract.builder_signature == builder_signature:
                return contract.to_dto()
            raise ContractAlreadySignedError(str(contract.id))

        contract.builder_signature = builder_signature
        contract.updated_by_id = actor.user_id
        self.session.flush()

        logger.info("contract_signed", extra={"contract_id": str(contract.id)})
        self._notify(
            contract,
            recipient_id=contract.sponsor_id,
            sender_id=actor.user_id,
            action=NotificationAction.COMPLETED,
            title="Contract Signed by Builder",
            content="The builder has signed the contract.",
        )
        return contract.to_dto()

    def delete_contract(self, actor: Actor | None, contract_id: UUID) -> None:
        """Withdraw an unsigned contract.  Sponsor only."""
        actor = self.guard.require_authenticated(actor)
        contract, relation = self._load(actor, contract_id, "delete")
        self.guard.require(relation, SPONSOR, "delete", "contract")
        if contract.builder_signature:
            raise ContractAlreadySignedError(str(contract.id))

        self.session.delete(contract)
        self.session.flush()
        logger.info("contract_deleted", extra={"contract_id": str(contract_id)})

    def _load(
        self, actor: Actor, contract_id: UUID, action: str
    ) -> tuple[Contract, ActorRelation]:
        contract = self._load_for_update(Contract, contract_id)
        if contract is None:
            self.guard.deny_missing(
                actor, action, "contract", ContractNotFoundError(str(contract_id))
            )
        return contract, self.guard.relation_to_application(actor, contract.application)

    def _notify(
        self,
        contract: Contract,
        recipient_id: UUID,
        sender_id: UUID,
        action: NotificationAction,
        title: str,
        content: str,
    ) -> None:
        self._publish(
            NotificationEvent(
                type=NotificationType.CONTRACT,
                action=action,
                recipient_id=recipient_id,
                sender_id=sender_id,
                entity_id=contract.id,
                title=title,
                content=content,
                metadata={
                    "program_id": str(contract.program_id),
                    "application_id": str(contract.application_id),
                },
            )
        )
