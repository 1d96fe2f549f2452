"""ORM models for the grant kernel."""

from grant_kernel.models.application import Application
from grant_kernel.models.contract import Contract
from grant_kernel.models.milestone import Milestone
from grant_kernel.models.network import Network, SmartContract, Token
from grant_kernel.models.notification import Notification
from grant_kernel.models.onchain import OnchainContractInfo, OnchainProgramInfo
from grant_kernel.models.program import Program
from grant_kernel.models.user import User

__all__ = [
    "Application",
    "Contract",
    "Milestone",
    "Network",
    "Notification",
    "OnchainContractInfo",
    "OnchainProgramInfo",
    "Program",
    "SmartContract",
    "Token",
    "User",
    "import_all_models",
]


def import_all_models() -> list[type]:
    """Return every mapped class; importing this package registers them on Base.metadata."""
    return [
        User,
        Network,
        Token,
        SmartContract,
        Program,
        Application,
        Milestone,
        Contract,
        OnchainProgramInfo,
        OnchainContractInfo,
        Notification,
    ]
