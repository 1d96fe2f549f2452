#!/usr/bin/env python3
"""
Seed the database with a small but complete grant lifecycle.

Drops all tables, recreates them, and walks one program from draft to
closed through the services: users, reference data, an on-chain program,
review, one application with a signed contract and two paid milestones.

Usage:
    python3 scripts/seed_data.py
    DATABASE_URL=sqlite:///grant.db python3 scripts/seed_data.py
"""

import sys
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _wallet() -> str:
    return "0x" + uuid4().hex + uuid4().hex[:8]


def _tx() -> str:
    return "0x" + uuid4().hex + uuid4().hex


def main() -> int:
    from grant_config import get_settings
    from grant_config.bridges import init_engine, to_lifecycle_policy
    from grant_kernel.db.engine import create_tables, drop_tables, session_scope
    from grant_kernel.domain.actor import Actor
    from grant_kernel.domain.statuses import ApplicationStatus, UserRole
    from grant_kernel.models.user import User
    from grant_kernel.services import (
        ApplicationService,
        ContractService,
        MilestoneService,
        NotificationPublisher,
        OnchainContractInfoService,
        ProgramService,
        ReferenceDataService,
        UserService,
    )

    # -----------------------------------------------------------------
    # 1. Connect + reset
    # -----------------------------------------------------------------
    settings = get_settings()
    print()
    print(f"  [1/5] Connecting ({settings.database.url.split(':', 1)[0]})...")
    try:
        init_engine(settings)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print("  [2/5] Dropping old tables and recreating schema...")
    drop_tables()
    create_tables()
    policy = to_lifecycle_policy(settings)

    with session_scope() as session:
        publisher = NotificationPublisher(session)

        def svc(cls):
            return cls(session, publisher=publisher, policy=policy)

        # -------------------------------------------------------------
        # 3. Users and reference data
        # -------------------------------------------------------------
        print("  [3/5] Creating users, network, token and smart contract...")
        users = svc(UserService)
        admin_info = users.create_user(_wallet(), nickname="admin")
        # The first admin cannot be granted by another admin
        session.get(User, admin_info.id).role = UserRole.ADMIN
        session.flush()
        admin = Actor(admin_info.id, UserRole.ADMIN)

        sponsor = Actor(users.create_user(_wallet(), nickname="sponsor").id)
        builder = Actor(users.create_user(_wallet(), nickname="builder").id)
        relayer_info = users.create_user(_wallet(), nickname="relayer")
        users.set_role(admin, relayer_info.id, UserRole.RELAYER)
        relayer = Actor(relayer_info.id, UserRole.RELAYER)

        reference = svc(ReferenceDataService)
        network = reference.create_network(
            admin, 11155111, "Sepolia", explore_url="https://sepolia.etherscan.io"
        )
        token = reference.create_token(admin, network.id, "USDC", _wallet(), decimals=6)
        escrow = reference.register_smart_contract(
            admin, network.id, _wallet(), "GrantEscrow"
        )

        # -------------------------------------------------------------
        # 4. Program -> application -> milestones
        # -------------------------------------------------------------
        print("  [4/5] Running the program lifecycle...")
        programs = svc(ProgramService)
        program, _ = programs.create_program_with_onchain(
            sponsor,
            title="Open-source tooling grant",
            smart_contract_id=escrow.id,
            onchain_program_id=1,
            tx=_tx(),
            network_id=network.id,
            token_id=token.id,
            price=Decimal("5000"),
            skills=["python", "solidity"],
        )
        programs.submit_for_review(sponsor, program.id)
        programs.approve_program(admin, program.id)

        applications = svc(ApplicationService)
        application = applications.create_application(
            builder, program.id, content="We will build the indexer."
        )
        applications.review_application(
            sponsor, application.id, ApplicationStatus.PENDING_SIGNATURE
        )

        contracts = svc(ContractService)
        contract = contracts.create_contract(
            sponsor,
            application.id,
            escrow.id,
            snapshot_contents={"milestones": 2, "total": "5000"},
        )
        contracts.sign_contract(builder, contract.id, "builder-signature")
        svc(OnchainContractInfoService).record(
            sponsor, program.id, escrow.id, 1, _tx(), application_id=application.id
        )
        applications.review_application(
            sponsor, application.id, ApplicationStatus.IN_PROGRESS
        )

        milestones = svc(MilestoneService)
        for title, payout in (("Indexer MVP", "2000"), ("Dashboard", "3000")):
            milestone = milestones.create_milestone(
                sponsor, application.id, title=title, payout=payout
            )
            milestones.publish_milestone(sponsor, milestone.id)
            milestones.start_milestone(sponsor, milestone.id)
            milestones.submit_files(builder, milestone.id, [f"{title}.pdf"])
            milestones.complete_milestone(relayer, milestone.id, payout_tx=_tx())
            print(f"         milestone '{title}' paid out")

        applications.complete_application(builder, application.id)
        closed = programs.complete_program(sponsor, program.id)

        # -------------------------------------------------------------
        # 5. Commit (session_scope)
        # -------------------------------------------------------------
        print("  [5/5] Committing...")

    print()
    print(f"  Done. Program {closed.id} is {closed.status.value}.")
    print(f"    sponsor: {sponsor.user_id}")
    print(f"    builder: {builder.user_id}")
    print(f"    admin:   {admin.user_id}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
