class LedgerError(Exception):
    """Base class for business-rule failures.

    ``error_type`` is the machine-readable kind returned to callers
    in a failed ``WorkflowResult``.
    """

    error_type = "ledger_error"

    def __init__(self, message=""):
        super().__init__(message)
        self.message = message


class VoucherValidationError(LedgerError):
    """Raised when voucher lines or headers break a bookkeeping rule."""

    error_type = "validation_error"


class UnbalancedVoucherError(VoucherValidationError):
    """Raised when a voucher fails the double-entry balance check."""


class NotFoundError(LedgerError):
    """Raised when a record is missing or belongs to another company."""

    error_type = "not_found"


class TransitionError(LedgerError):
    """Raised when a status change is not in the transition table."""

    error_type = "transition_error"

    def __init__(self, current, requested, message=None):
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Cannot go from {current} to {requested}"
        )


class ActionPermissionError(LedgerError):
    """Raised when the actor's role may not perform a workflow action."""

    error_type = "permission_error"


class AccountStateError(LedgerError):
    """Raised when posting hits an inactive or group account."""

    error_type = "account_state_error"

    def __init__(self, message, account_code=None):
        super().__init__(message)
        self.account_code = account_code


class DuplicateReversalError(LedgerError):
    """Raised when a voucher already has a reversal voucher."""

    error_type = "duplicate_reversal"


class LinkedRecordSyncError(LedgerError):
    """Raised when a linked business record fails to follow a status change."""

    error_type = "sync_error"
