"""
Typed Exception Hierarchy for the Grant Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Client UIs must tell "not found" from "not authorized" from "business rule
blocked" (disable a Complete button vs. show an auth prompt).  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (counts, statuses, ids)

Example:
    try:
        service.complete_application(actor, application_id)
    except IncompleteChildrenError as e:
        api_response(code=e.code, completed=e.completed, total=e.total)
    except ForbiddenError as e:
        api_response(code=e.code, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GrantKernelError (base)
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- NetworkNotFoundError
    |   +-- TokenNotFoundError
    |   +-- SmartContractNotFoundError
    |   +-- ProgramNotFoundError
    |   +-- ApplicationNotFoundError
    |   +-- MilestoneNotFoundError
    |   +-- ContractNotFoundError
    |   +-- OnchainProgramInfoNotFoundError
    |   +-- OnchainContractInfoNotFoundError
    |   +-- NotificationNotFoundError
    |
    +-- ForbiddenError
    |   +-- NotAuthorizedError
    |   +-- UnauthorizedActionError
    |
    +-- InvalidTransitionError
    |   +-- TerminalStateError
    |   +-- IncompleteChildrenError
    |   +-- MissingOnchainRecordError
    |
    +-- ValidationError
        +-- MissingRejectedReasonError
        +-- InvalidHashError
        +-- InvalidAddressError
        +-- InvalidAmountError
        +-- InvalidStatusError
        +-- ProgramNotAcceptingApplicationsError
        +-- FieldNotEditableError
        +-- DuplicateRecordError
        +-- ContractAlreadySignedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | *_NOT_FOUND                 | Id does not resolve to a row (reads,
                |                             | and guarded writes by admins)
----------------|-----------------------------|-----------------------------------------
Forbidden       | NOT_AUTHORIZED              | No authenticated actor
                | UNAUTHORIZED_ACTION         | Actor relation fails the guard
----------------|-----------------------------|-----------------------------------------
Transition      | INVALID_TRANSITION          | No edge from current to requested status
                | TERMINAL_STATE              | Current status has no outgoing edges
                | INCOMPLETE_CHILDREN         | Completion aggregator blocked "complete"
                | MISSING_ONCHAIN_RECORD      | Program review without on-chain record
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_REJECTED_REASON     | Rejecting without a reason
                | INVALID_HASH                | Not 0x + 64 hex characters
                | INVALID_ADDRESS             | Not 0x + 40 hex characters
                | INVALID_AMOUNT              | Amount is not a non-negative decimal
                | INVALID_STATUS              | Status value outside the allowed set
                | PROGRAM_NOT_OPEN            | Applying to a program that is not open
                | FIELD_NOT_EDITABLE          | Field edit not allowed in this status
                | DUPLICATE_RECORD            | Unique key already taken
                | CONTRACT_ALREADY_SIGNED     | Builder signature already recorded

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Forbidden messages never mention entity state.  A guard failure is
   reported before any business rule runs, so an unauthorized actor cannot
   probe statuses or counts.

2. Guarded mutations on an unknown id raise Forbidden for non-admins (the
   guard cannot find a relation) and NotFound for admins.  Read queries
   always raise NotFound.

3. Status values in messages are the plain string values, never enum
   reprs, because the messages are surfaced verbatim to clients.
"""


class GrantKernelError(Exception):
    """
    Base exception for all grant kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GRANT_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(GrantKernelError):
    """Entity id does not resolve to a row."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found")


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity_type: str = "User"


class NetworkNotFoundError(NotFoundError):
    code: str = "NETWORK_NOT_FOUND"
    entity_type: str = "Network"


class TokenNotFoundError(NotFoundError):
    code: str = "TOKEN_NOT_FOUND"
    entity_type: str = "Token"


class SmartContractNotFoundError(NotFoundError):
    code: str = "SMART_CONTRACT_NOT_FOUND"
    entity_type: str = "Smart contract"


class ProgramNotFoundError(NotFoundError):
    code: str = "PROGRAM_NOT_FOUND"
    entity_type: str = "Program"


class ApplicationNotFoundError(NotFoundError):
    code: str = "APPLICATION_NOT_FOUND"
    entity_type: str = "Application"


class MilestoneNotFoundError(NotFoundError):
    code: str = "MILESTONE_NOT_FOUND"
    entity_type: str = "Milestone"


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"
    entity_type: str = "Contract"


class OnchainProgramInfoNotFoundError(NotFoundError):
    code: str = "ONCHAIN_PROGRAM_INFO_NOT_FOUND"
    entity_type: str = "Onchain program info"


class OnchainContractInfoNotFoundError(NotFoundError):
    code: str = "ONCHAIN_CONTRACT_INFO_NOT_FOUND"
    entity_type: str = "Onchain contract info"


class NotificationNotFoundError(NotFoundError):
    code: str = "NOTIFICATION_NOT_FOUND"
    entity_type: str = "Notification"


# Authorization exceptions


class ForbiddenError(GrantKernelError):
    """Actor is not allowed to perform the operation."""

    code: str = "FORBIDDEN"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotAuthorizedError(ForbiddenError):
    """No authenticated actor was supplied."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self):
        super().__init__("Not authorized")


class UnauthorizedActionError(ForbiddenError):
    """Authenticated actor fails the guard for this action."""

    code: str = "UNAUTHORIZED_ACTION"

    def __init__(self, action: str, entity_type: str):
        self.action = action
        self.entity_type = entity_type
        super().__init__(f"Unauthorized to {action} this {entity_type}")


# Transition exceptions


class InvalidTransitionError(GrantKernelError):
    """Business rule rejects the requested status change."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        if message is None:
            message = (
                f"Cannot move {entity_type} from {from_status} to {to_status}"
            )
            if reason:
                message = f"{message}: {reason}"
        super().__init__(message)


class TerminalStateError(InvalidTransitionError):
    """Current status is terminal; no further transitions are permitted."""

    code: str = "TERMINAL_STATE"

    def __init__(self, entity_type: str, from_status: str, to_status: str):
        super().__init__(
            entity_type,
            from_status,
            to_status,
            reason=f"{from_status} is a terminal status",
        )


class IncompleteChildrenError(InvalidTransitionError):
    """
    Completion aggregator reported unfinished children.

    The message carries the literal counts, e.g.
    "Cannot complete application: 1 out of 2 milestones completed".
    """

    code: str = "INCOMPLETE_CHILDREN"

    def __init__(
        self,
        entity_type: str,
        child_noun: str,
        completed: int,
        total: int,
        from_status: str,
        to_status: str,
    ):
        self.child_noun = child_noun
        self.completed = completed
        self.total = total
        super().__init__(
            entity_type,
            from_status,
            to_status,
            reason="incomplete_children",
            message=(
                f"Cannot complete {entity_type}: "
                f"{completed} out of {total} {child_noun} completed"
            ),
        )


class MissingOnchainRecordError(InvalidTransitionError):
    """Program review requested before its on-chain record exists."""

    code: str = "MISSING_ONCHAIN_RECORD"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            "program",
            from_status,
            to_status,
            reason="onchain_program_record_missing",
            message=(
                "Cannot submit program for review: "
                "on-chain program record not found"
            ),
        )


# Validation exceptions


class ValidationError(GrantKernelError):
    """Malformed input."""

    code: str = "VALIDATION_ERROR"


class MissingRejectedReasonError(ValidationError):
    code: str = "MISSING_REJECTED_REASON"

    def __init__(self):
        super().__init__("Rejected reason is required when rejecting an application")


class InvalidHashError(ValidationError):
    code: str = "INVALID_HASH"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {field}: expected 0x followed by 64 hex characters"
        )


class InvalidAddressError(ValidationError):
    code: str = "INVALID_ADDRESS"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {field}: expected 0x followed by 40 hex characters"
        )


class InvalidAmountError(ValidationError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = str(value)
        super().__init__(
            f"Invalid {field}: {value!s} is not a non-negative decimal amount"
        )


class InvalidStatusError(ValidationError):
    code: str = "INVALID_STATUS"

    def __init__(self, entity_type: str, status: str, allowed: tuple[str, ...]):
        self.entity_type = entity_type
        self.status = status
        self.allowed = allowed
        super().__init__(
            f"Invalid {entity_type} status {status!r}; "
            f"expected one of: {', '.join(allowed)}"
        )


class ProgramNotAcceptingApplicationsError(ValidationError):
    code: str = "PROGRAM_NOT_OPEN"

    def __init__(self, program_id: str, status: str):
        self.program_id = str(program_id)
        self.status = status
        super().__init__("Program is not accepting applications")


class FieldNotEditableError(ValidationError):
    code: str = "FIELD_NOT_EDITABLE"

    def __init__(self, entity_type: str, fields: tuple[str, ...], status: str):
        self.entity_type = entity_type
        self.fields = fields
        self.status = status
        super().__init__(
            f"Cannot edit {', '.join(fields)} of {entity_type} "
            f"while it is {status}"
        )


class DuplicateRecordError(ValidationError):
    code: str = "DUPLICATE_RECORD"

    def __init__(self, entity_type: str, field: str, value: str):
        self.entity_type = entity_type
        self.field = field
        self.value = str(value)
        super().__init__(f"{entity_type} with {field} {value} already exists")


class ContractAlreadySignedError(ValidationError):
    code: str = "CONTRACT_ALREADY_SIGNED"

    def __init__(self, contract_id: str):
        self.contract_id = str(contract_id)
        super().__init__("Contract already signed by builder")
