"""Read-only query selectors."""

from grant_kernel.selectors.application_selector import ApplicationSelector
from grant_kernel.selectors.base import BaseSelector
from grant_kernel.selectors.completion_selector import CompletionSelector
from grant_kernel.selectors.contract_selector import ContractSelector
from grant_kernel.selectors.milestone_selector import MilestoneSelector
from grant_kernel.selectors.notification_selector import NotificationSelector
from grant_kernel.selectors.program_selector import ProgramSelector
from grant_kernel.selectors.reference_selector import ReferenceSelector

__all__ = [
    "ApplicationSelector",
    "BaseSelector",
    "CompletionSelector",
    "ContractSelector",
    "MilestoneSelector",
    "NotificationSelector",
    "ProgramSelector",
    "ReferenceSelector",
]
