"""
Tests for ContractService.

Covers:
- Contracts only for accepted applications, one per application
- Builder signature: idempotent repeat, different signature refused
- Snapshot locked and deletion refused once signed
"""

from uuid import uuid4

import pytest

from grant_kernel.domain.statuses import ApplicationStatus
from grant_kernel.exceptions import (
    ContractAlreadySignedError,
    ContractNotFoundError,
    DuplicateRecordError,
    FieldNotEditableError,
    InvalidHashError,
    InvalidStatusError,
    SmartContractNotFoundError,
    UnauthorizedActionError,
    ValidationError,
)
from grant_kernel.models.contract import Contract

SNAPSHOT = {"scope": "Build the indexer", "payout": "1000"}


@pytest.fixture
def pending_application(make_application):
    return make_application(ApplicationStatus.PENDING_SIGNATURE)


@pytest.fixture
def contract(contract_service, pending_application, sponsor, smart_contract):
    return contract_service.create_contract(
        sponsor,
        pending_application.id,
        smart_contract.id,
        snapshot_contents=SNAPSHOT,
        snapshot_hash="0x" + "ab" * 32,
    )


class TestCreateContract:
    def test_sponsor_sends_contract(
        self, contract, pending_application, sponsor, builder, publisher
    ):
        assert contract.application_id == pending_application.id
        assert contract.sponsor_id == sponsor.user_id
        assert contract.applicant_id == builder.user_id
        assert contract.snapshot_contents == SNAPSHOT
        assert contract.builder_signature is None

        received = publisher.of_type("contract.created")
        assert [e.recipient_id for e in received] == [builder.user_id]
        assert received[0].title == "New Contract Received"

    def test_one_contract_per_application(
        self, contract_service, contract, pending_application, sponsor, smart_contract
    ):
        with pytest.raises(DuplicateRecordError):
            contract_service.create_contract(
                sponsor, pending_application.id, smart_contract.id
            )

    @pytest.mark.parametrize(
        "status", [ApplicationStatus.SUBMITTED, ApplicationStatus.REJECTED]
    )
    def test_application_must_be_accepted(
        self, contract_service, make_application, sponsor, smart_contract, status
    ):
        application = make_application(status)
        with pytest.raises(InvalidStatusError):
            contract_service.create_contract(sponsor, application.id, smart_contract.id)

    def test_builder_cannot_issue(
        self, contract_service, pending_application, builder, smart_contract
    ):
        with pytest.raises(UnauthorizedActionError):
            contract_service.create_contract(
                builder, pending_application.id, smart_contract.id
            )

    def test_unknown_smart_contract(
        self, contract_service, pending_application, sponsor
    ):
        with pytest.raises(SmartContractNotFoundError):
            contract_service.create_contract(sponsor, pending_application.id, uuid4())

    def test_bad_snapshot_hash(
        self, contract_service, pending_application, sponsor, smart_contract
    ):
        with pytest.raises(InvalidHashError):
            contract_service.create_contract(
                sponsor, pending_application.id, smart_contract.id, snapshot_hash="0x1"
            )


class TestSignContract:
    def test_builder_signs(self, contract_service, contract, builder, sponsor, publisher):
        info = contract_service.sign_contract(builder, contract.id, "0xsig")
        assert info.builder_signature == "0xsig"

        signed = publisher.of_type("contract.completed")
        assert [e.recipient_id for e in signed] == [sponsor.user_id]
        assert signed[0].title == "Contract Signed by Builder"

    def test_same_signature_is_noop(self, contract_service, contract, builder, publisher):
        contract_service.sign_contract(builder, contract.id, "0xsig")
        again = contract_service.sign_contract(builder, contract.id, "0xsig")

        assert again.builder_signature == "0xsig"
        assert len(publisher.of_type("contract.completed")) == 1

    def test_different_signature_refused(self, contract_service, contract, builder):
        contract_service.sign_contract(builder, contract.id, "0xsig")
        with pytest.raises(ContractAlreadySignedError):
            contract_service.sign_contract(builder, contract.id, "0xother")

    def test_sponsor_cannot_sign(self, contract_service, contract, sponsor):
        with pytest.raises(UnauthorizedActionError):
            contract_service.sign_contract(sponsor, contract.id, "0xsig")

    def test_empty_signature(self, contract_service, contract, builder):
        with pytest.raises(ValidationError):
            contract_service.sign_contract(builder, contract.id, "  ")


class TestUpdateAndDelete:
    def test_snapshot_editable_before_signing(self, contract_service, contract, sponsor):
        info = contract_service.update_contract(
            sponsor, contract.id, snapshot_contents={"scope": "Smaller"}
        )
        assert info.snapshot_contents == {"scope": "Smaller"}

    def test_snapshot_locked_after_signing(
        self, contract_service, contract, sponsor, builder
    ):
        contract_service.sign_contract(builder, contract.id, "0xsig")
        with pytest.raises(FieldNotEditableError):
            contract_service.update_contract(
                sponsor, contract.id, snapshot_hash="0x" + "cd" * 32
            )

    def test_delete_unsigned(self, contract_service, contract, sponsor, session):
        contract_service.delete_contract(sponsor, contract.id)
        session.expire_all()
        assert session.get(Contract, contract.id) is None

    def test_signed_contract_cannot_be_deleted(
        self, contract_service, contract, sponsor, builder
    ):
        contract_service.sign_contract(builder, contract.id, "0xsig")
        with pytest.raises(ContractAlreadySignedError):
            contract_service.delete_contract(sponsor, contract.id)

    def test_unknown_contract(self, contract_service, stranger, admin):
        with pytest.raises(UnauthorizedActionError):
            contract_service.delete_contract(stranger, uuid4())
        with pytest.raises(ContractNotFoundError):
            contract_service.delete_contract(admin, uuid4())
