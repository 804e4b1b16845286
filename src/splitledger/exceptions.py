"""Custom exceptions for Split Ledger."""

from decimal import Decimal


class SplitLedgerError(Exception):
    """Base exception for all Split Ledger errors."""

    exit_code = 1
    retryable = False


class ConfigurationError(SplitLedgerError):
    """Raised when configuration is invalid or missing."""

    exit_code = 2


class ValidationError(SplitLedgerError):
    """Raised when input is rejected before anything is written."""

    exit_code = 3


class SplitValidationError(ValidationError):
    """Raised when a split policy does not reconcile with the expense total."""

    def __init__(
        self,
        message: str,
        expected: Decimal | None = None,
        actual: Decimal | None = None,
    ):
        self.expected = expected
        self.actual = actual
        if expected is not None and actual is not None:
            message = (
                f"{message} (expected {expected}, got {actual}, "
                f"difference {actual - expected})"
            )
        super().__init__(message)


class InvalidSettlementTransitionError(ValidationError):
    """Raised when a settlement cannot move to the requested state."""

    def __init__(self, settlement_id: int, status: str):
        self.settlement_id = settlement_id
        self.status = status
        super().__init__(f"Settlement {settlement_id} is already {status}")


class AuthorizationError(SplitLedgerError):
    """Raised when the acting user may not perform an operation."""

    exit_code = 4


class NotFoundError(SplitLedgerError):
    """Base class for ids that do not resolve."""

    exit_code = 5
    entity = "Record"

    def __init__(self, entity_id: int, message: str | None = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} {entity_id} not found")


class GroupNotFoundError(NotFoundError):
    entity = "Group"


class ExpenseNotFoundError(NotFoundError):
    entity = "Expense"


class SettlementNotFoundError(NotFoundError):
    entity = "Settlement"


class TemplateNotFoundError(NotFoundError):
    entity = "Recurring expense"


class BudgetNotFoundError(NotFoundError):
    entity = "Budget"


class LedgerStoreError(SplitLedgerError):
    """Raised when a write fails partway and the transaction was rolled back."""

    exit_code = 6
    retryable = True

    def __init__(self, message: str = "The ledger could not be updated, try again"):
        super().__init__(message)
