"""
Shared dependencies for the API routers
"""

from fastapi import HTTPException, Request, status

from ..engine import LedgerEngine
from ..result import Result, ErrorType


# Error codes a client can fix by changing its request
_STATUS_BY_ERROR = {
    ErrorType.LOAN_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorType.CUSTOMER_RESOLUTION_FAILED: status.HTTP_400_BAD_REQUEST,
}


def get_engine(request: Request) -> LedgerEngine:
    """Dependency to get the ledger engine the app was created with"""
    return request.app.state.engine


def unwrap(result: Result):
    """Return the result's value or raise the matching HTTPException"""
    if result.success:
        return result.value
    status_code = _STATUS_BY_ERROR.get(result.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=status_code, detail=result.error)
