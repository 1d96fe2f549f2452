"""Services for the grant kernel (write side)."""

from grant_kernel.services.application_service import ApplicationService
from grant_kernel.services.authorization import AuthorizationGuard
from grant_kernel.services.base import BaseService
from grant_kernel.services.contract_service import ContractService
from grant_kernel.services.milestone_service import MilestoneService
from grant_kernel.services.notification_service import (
    NotificationPublisher,
    NotificationService,
)
from grant_kernel.services.onchain_service import (
    OnchainContractInfoService,
    OnchainProgramInfoService,
)
from grant_kernel.services.program_service import ProgramService
from grant_kernel.services.reference_data_service import ReferenceDataService
from grant_kernel.services.user_service import UserService

__all__ = [
    "ApplicationService",
    "AuthorizationGuard",
    "BaseService",
    "ContractService",
    "MilestoneService",
    "NotificationPublisher",
    "NotificationService",
    "OnchainContractInfoService",
    "OnchainProgramInfoService",
    "ProgramService",
    "ReferenceDataService",
    "UserService",
]
