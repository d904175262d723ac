"""Result pattern for engine operations.

Every write and read entry point of the ledger engine returns a ``Result``
instead of raising, so callers always get a displayable message.
"""
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import LedgerError

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class Result(Generic[T]):
    """Represents the outcome of an operation.

    Attributes:
        success: Whether the operation succeeded.
        value: The return value on success, None on failure.
        error: User-facing error message on failure, None on success.
        error_type: Error code (see ``ErrorType``) for programmatic handling.
        warning: Set when a read succeeded with degraded data, e.g. a
            cached value served because recomputation failed.

    Usage:
        result = await engine.apply_payment(loan_id, "100")
        if result.success:
            print(result.value.remaining_amount)
        else:
            print(result.error)
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    warning: Optional[str] = None

    @classmethod
    def ok(cls, value: T = None, warning: Optional[str] = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value, warning=warning)

    @classmethod
    def fail(cls, error: str, error_type: str = None) -> 'Result[T]':
        """Create a failure result."""
        return cls(success=False, error=error, error_type=error_type)

    @classmethod
    def from_error(cls, exc: LedgerError) -> 'Result[T]':
        """Create a failure result from a ledger exception."""
        return cls.fail(exc.message, exc.code)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """Get the value, raising an exception if the operation failed.

        Raises:
            ValueError: If the operation failed.
        """
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default

    def map(self, mapper: Callable[[T], R]) -> 'Result[R]':
        """Transform the value of a successful result."""
        if not self.success:
            return Result(success=False, error=self.error, error_type=self.error_type)
        return Result(success=True, value=mapper(self.value), warning=self.warning)

    def fold(self, on_success: Callable[[T], Any], on_failure: Callable[[str, Optional[str]], Any]) -> Any:
        """Handle both the success and the failure case."""
        if self.success:
            return on_success(self.value)
        return on_failure(self.error, self.error_type)


class ErrorType:
    """Standard error codes."""
    INVALID_AMOUNT = "INVALID_AMOUNT"
    LOAN_NOT_FOUND = "LOAN_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    CUSTOMER_RESOLUTION_FAILED = "CUSTOMER_RESOLUTION_FAILED"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    UNEXPECTED = "UNEXPECTED"
