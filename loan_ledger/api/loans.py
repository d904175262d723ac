"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .deps import get_engine, unwrap
from .schemas import (
    CreateLoanRequest, UpdateLoanStatusRequest,
    loan_response, listing_response, payment_response
)
from ..engine import LedgerEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    engine: LedgerEngine = Depends(get_engine)
):
    """Disburse a new loan"""
    loan = unwrap(await engine.create_loan(
        customer_id=request.customer_id,
        principal=request.principal,
        loan_type=request.loan_type,
        loan_date=request.loan_date,
        tenure=request.tenure,
        due_date=request.due_date,
        monthly_interest_amount=request.monthly_interest_amount,
        book_no=request.book_no,
        notes=request.notes,
    ))
    return {
        "loan": loan_response(loan),
        "message": "Loan created successfully"
    }


@router.get("")
async def list_loans(
    search: Optional[str] = Query(None, description="Matches customer name, phone or book number"),
    status_filter: Optional[str] = Query(None, alias="status"),
    engine: LedgerEngine = Depends(get_engine)
):
    """List active loans, optionally filtered"""
    if search or status_filter:
        unwrap(engine.set_filters(search or "", status_filter))
        result = await engine.filtered_loans()
    else:
        result = await engine.list_loans()
    listing = unwrap(result)
    return {
        "loans": [listing_response(row) for row in listing],
        "count": len(listing),
        "warning": result.warning
    }


@router.post("/sweep")
async def run_overdue_sweep(engine: LedgerEngine = Depends(get_engine)):
    """Re-evaluate delinquency of every open loan"""
    report = unwrap(await engine.run_overdue_sweep())
    return {
        "checked": report.checked,
        "changed": {str(loan_id): new_status.value for loan_id, new_status in report.changed.items()},
        "message": "Overdue sweep completed"
    }


@router.get("/{loan_id}")
async def get_loan(
    loan_id: int,
    engine: LedgerEngine = Depends(get_engine)
):
    """Get loan details"""
    loan = unwrap(await engine.get_loan(loan_id))
    return loan_response(loan)


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: int,
    permanent: bool = False,
    engine: LedgerEngine = Depends(get_engine)
):
    """Delete a loan with all of its payments"""
    unwrap(await engine.delete_loan(loan_id, permanent=permanent))
    return {
        "loan_id": loan_id,
        "permanent": permanent,
        "message": "Loan deleted successfully"
    }


@router.patch("/{loan_id}/status")
async def update_loan_status(
    loan_id: int,
    request: UpdateLoanStatusRequest,
    engine: LedgerEngine = Depends(get_engine)
):
    """Set a loan's status administratively"""
    loan = unwrap(await engine.update_loan_status(loan_id, request.status))
    return {
        "loan": loan_response(loan),
        "message": "Loan status updated successfully"
    }


@router.get("/{loan_id}/payments")
async def get_payment_history(
    loan_id: int,
    engine: LedgerEngine = Depends(get_engine)
):
    """Active payments of a loan, newest first"""
    payments = unwrap(await engine.payment_history(loan_id))
    return {"payments": [payment_response(payment) for payment in payments]}
