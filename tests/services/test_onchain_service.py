"""
Tests for the on-chain record services.

Covers:
- One record per program, written by sponsor / relayer / admin
- Smart contract must live on the record's network
- Status graph: active/paused/updated, completed and cancelled terminal
- Contract records link the off-chain contract and notify the builder
"""

from uuid import uuid4

import pytest

from grant_kernel.domain.statuses import (
    ApplicationStatus,
    OnchainStatus,
    ProgramStatus,
)
from grant_kernel.exceptions import (
    ApplicationNotFoundError,
    DuplicateRecordError,
    InvalidHashError,
    InvalidTransitionError,
    OnchainProgramInfoNotFoundError,
    TerminalStateError,
    UnauthorizedActionError,
    ValidationError,
)
from grant_kernel.models.contract import Contract
from grant_kernel.models.onchain import OnchainProgramInfo
from grant_kernel.models.program import Program


def tx_hash() -> str:
    return "0x" + uuid4().hex * 2


@pytest.fixture
def bare_program(program_service, sponsor, network):
    """Draft program with no on-chain record yet."""
    return program_service.create_program(
        sponsor, title="Not on chain", network_id=network.id
    )


@pytest.fixture
def program_record(onchain_program_service, bare_program, sponsor, network, smart_contract):
    return onchain_program_service.record(
        sponsor, bare_program.id, network.id, smart_contract.id, 42, tx_hash()
    )


class TestRecordProgram:
    def test_sponsor_records(self, program_record, bare_program):
        assert program_record.program_id == bare_program.id
        assert program_record.onchain_program_id == 42
        assert program_record.status == OnchainStatus.ACTIVE

    def test_relayer_records(
        self, onchain_program_service, bare_program, relayer, network, smart_contract
    ):
        info = onchain_program_service.record(
            relayer, bare_program.id, network.id, smart_contract.id, 7, tx_hash()
        )
        assert info.onchain_program_id == 7

    def test_stranger_forbidden(
        self, onchain_program_service, bare_program, stranger, network, smart_contract
    ):
        with pytest.raises(UnauthorizedActionError):
            onchain_program_service.record(
                stranger, bare_program.id, network.id, smart_contract.id, 7, tx_hash()
            )

    def test_one_record_per_program(
        self, onchain_program_service, draft_program, sponsor, network, smart_contract
    ):
        with pytest.raises(DuplicateRecordError):
            onchain_program_service.record(
                sponsor, draft_program.id, network.id, smart_contract.id, 2, tx_hash()
            )

    def test_invalid_tx(
        self, onchain_program_service, bare_program, sponsor, network, smart_contract
    ):
        with pytest.raises(InvalidHashError):
            onchain_program_service.record(
                sponsor, bare_program.id, network.id, smart_contract.id, 1, "0xabc"
            )

    def test_smart_contract_on_other_network(
        self,
        onchain_program_service,
        reference_service,
        bare_program,
        sponsor,
        admin,
        smart_contract,
    ):
        other = reference_service.create_network(admin, 8453, "Base")
        with pytest.raises(ValidationError):
            onchain_program_service.record(
                sponsor, bare_program.id, other.id, smart_contract.id, 1, tx_hash()
            )

    def test_record_unlocks_review(
        self, program_service, program_record, bare_program, sponsor
    ):
        info = program_service.submit_for_review(sponsor, bare_program.id)
        assert info.status == ProgramStatus.UNDER_REVIEW


class TestProgramRecordStatus:
    def test_pause_and_resume(self, onchain_program_service, program_record, sponsor):
        paused = onchain_program_service.update_status(
            sponsor, program_record.id, OnchainStatus.PAUSED
        )
        assert paused.status == OnchainStatus.PAUSED
        resumed = onchain_program_service.update_status(
            sponsor, program_record.id, "active"
        )
        assert resumed.status == OnchainStatus.ACTIVE

    def test_same_status_is_noop(self, onchain_program_service, program_record, sponsor):
        info = onchain_program_service.update_status(
            sponsor, program_record.id, OnchainStatus.ACTIVE
        )
        assert info.tx == program_record.tx

    def test_new_tx_replaces_hash(self, onchain_program_service, program_record, relayer):
        tx = tx_hash()
        info = onchain_program_service.update_status(
            relayer, program_record.id, OnchainStatus.UPDATED, tx=tx
        )
        assert info.tx == tx

    def test_updated_cannot_pause(self, onchain_program_service, program_record, sponsor):
        onchain_program_service.update_status(
            sponsor, program_record.id, OnchainStatus.UPDATED
        )
        with pytest.raises(InvalidTransitionError):
            onchain_program_service.update_status(
                sponsor, program_record.id, OnchainStatus.PAUSED
            )

    @pytest.mark.parametrize("final", [OnchainStatus.COMPLETED, OnchainStatus.CANCELLED])
    def test_final_statuses_are_terminal(
        self, onchain_program_service, program_record, sponsor, final
    ):
        onchain_program_service.update_status(sponsor, program_record.id, final)
        with pytest.raises(TerminalStateError):
            onchain_program_service.update_status(
                sponsor, program_record.id, OnchainStatus.ACTIVE
            )

    def test_unknown_status(self, onchain_program_service, program_record, sponsor):
        with pytest.raises(ValidationError):
            onchain_program_service.update_status(sponsor, program_record.id, "frozen")

    def test_does_not_touch_program_status(
        self, onchain_program_service, program_record, bare_program, sponsor, session
    ):
        onchain_program_service.update_status(
            sponsor, program_record.id, OnchainStatus.CANCELLED
        )
        assert session.get(Program, bare_program.id).status == ProgramStatus.DRAFT


class TestDeleteProgramRecord:
    def test_relayer_cannot_delete(self, onchain_program_service, program_record, relayer):
        with pytest.raises(UnauthorizedActionError):
            onchain_program_service.delete(relayer, program_record.id)

    def test_sponsor_deletes(
        self, onchain_program_service, program_record, sponsor, session
    ):
        onchain_program_service.delete(sponsor, program_record.id)
        session.expire_all()
        assert session.get(OnchainProgramInfo, program_record.id) is None

    def test_unknown_record_for_admin(self, onchain_program_service, admin):
        with pytest.raises(OnchainProgramInfoNotFoundError):
            onchain_program_service.delete(admin, uuid4())


class TestRecordContract:
    def test_links_contract_and_notifies_builder(
        self,
        onchain_contract_service,
        contract_service,
        make_application,
        open_program,
        sponsor,
        builder,
        smart_contract,
        publisher,
        session,
    ):
        application = make_application(ApplicationStatus.PENDING_SIGNATURE)
        contract = contract_service.create_contract(
            sponsor, application.id, smart_contract.id
        )

        record = onchain_contract_service.record(
            sponsor,
            open_program.id,
            smart_contract.id,
            99,
            tx_hash(),
            application_id=application.id,
        )

        assert record.applicant_id == builder.user_id
        assert record.sponsor_id == sponsor.user_id
        assert session.get(Contract, contract.id).onchain_contract_id == 99
        signed = [
            e for e in publisher.of_type("contract.completed")
            if e.title == "Contract Signed by Sponsor"
        ]
        assert [e.recipient_id for e in signed] == [builder.user_id]

    def test_application_must_belong_to_program(
        self,
        onchain_contract_service,
        program_service,
        make_application,
        sponsor,
        smart_contract,
    ):
        application = make_application()
        other = program_service.create_program(sponsor, title="Other")
        with pytest.raises(ApplicationNotFoundError):
            onchain_contract_service.record(
                sponsor,
                other.id,
                smart_contract.id,
                1,
                tx_hash(),
                application_id=application.id,
            )

    def test_applicant_required(
        self, onchain_contract_service, open_program, sponsor, smart_contract
    ):
        with pytest.raises(ValidationError):
            onchain_contract_service.record(
                sponsor, open_program.id, smart_contract.id, 1, tx_hash()
            )

    def test_builder_cannot_record(
        self, onchain_contract_service, open_program, builder, smart_contract
    ):
        with pytest.raises(UnauthorizedActionError):
            onchain_contract_service.record(
                builder,
                open_program.id,
                smart_contract.id,
                1,
                tx_hash(),
                applicant_id=builder.user_id,
            )

    def test_status_graph(
        self, onchain_contract_service, open_program, sponsor, builder, smart_contract
    ):
        record = onchain_contract_service.record(
            sponsor,
            open_program.id,
            smart_contract.id,
            5,
            tx_hash(),
            applicant_id=builder.user_id,
        )
        info = onchain_contract_service.update_status(
            sponsor, record.id, OnchainStatus.COMPLETED
        )
        assert info.status == OnchainStatus.COMPLETED
        with pytest.raises(TerminalStateError):
            onchain_contract_service.update_status(
                sponsor, record.id, OnchainStatus.PAUSED
            )
