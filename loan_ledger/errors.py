"""Error taxonomy for the loan ledger.

Every failure that crosses the engine boundary is one of these. Each carries a
short user-facing ``message`` and a ``details`` dict for diagnostics; the
details are logged, never shown to the end user.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidAmount(LedgerError):
    """Raised for non-positive or unparseable money."""

    code = "INVALID_AMOUNT"


class LoanNotFound(LedgerError):
    """Raised when a loan id does not resolve to a loan."""

    code = "LOAN_NOT_FOUND"

    def __init__(self, loan_id: Optional[int] = None):
        message = "Loan not found"
        details = {}
        if loan_id is not None:
            message = f"Loan {loan_id} not found"
            details['loan_id'] = loan_id
        super().__init__(message, details)


class PaymentNotFound(LedgerError):
    """Raised when a payment id does not resolve to an active payment."""

    code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: Optional[int] = None):
        message = "Payment not found"
        details = {}
        if payment_id is not None:
            message = f"Payment {payment_id} not found"
            details['payment_id'] = payment_id
        super().__init__(message, details)


class CustomerResolutionFailed(LedgerError):
    """Raised when a payment cannot be attributed to a customer."""

    code = "CUSTOMER_RESOLUTION_FAILED"

    def __init__(self, loan_id: Optional[int] = None):
        details = {'loan_id': loan_id} if loan_id is not None else {}
        super().__init__("Could not determine customer for this loan", details)


class PersistenceFailure(LedgerError):
    """Wraps any error raised by the storage boundary."""

    code = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        details = {'operation': operation}
        if cause is not None:
            details['cause'] = f"{type(cause).__name__}: {cause}"
        super().__init__(f"Could not {operation}", details)
        self.cause = cause


class ConcurrencyConflict(LedgerError):
    """Raised when overlapping mutations on one loan are detected."""

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, loan_id: int):
        super().__init__(
            "This loan is being updated by another operation, try again",
            {'loan_id': loan_id},
        )
