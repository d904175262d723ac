"""
Payment endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import get_engine, unwrap
from .schemas import (
    PaymentRequest, MonthlyInterestPaymentRequest, EditPaymentRequest,
    loan_response, payment_response
)
from ..engine import LedgerEngine, LedgerUpdate


router = APIRouter()


def _update_response(update: LedgerUpdate, message: str) -> dict:
    return {
        "payment": payment_response(update.payment),
        "loan": loan_response(update.loan),
        "message": message
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def apply_payment(
    request: PaymentRequest,
    engine: LedgerEngine = Depends(get_engine)
):
    """Record a payment against a loan"""
    update = unwrap(await engine.apply_payment(
        loan_id=request.loan_id,
        amount=request.amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        notes=request.notes,
        customer_id=request.customer_id,
        receipt_number=request.receipt_number,
    ))
    return _update_response(update, "Payment recorded successfully")


@router.post("/monthly-interest", status_code=status.HTTP_201_CREATED)
async def apply_monthly_interest_payment(
    request: MonthlyInterestPaymentRequest,
    engine: LedgerEngine = Depends(get_engine)
):
    """Record an interest and principal payment on a monthly-interest loan"""
    update = unwrap(await engine.apply_monthly_interest_payment(
        loan_id=request.loan_id,
        interest_amount=request.interest_amount,
        principal_amount=request.principal_amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        notes=request.notes,
        receipt_number=request.receipt_number,
    ))
    return _update_response(update, "Payment recorded successfully")


@router.patch("/{payment_id}")
async def edit_payment(
    payment_id: int,
    request: EditPaymentRequest,
    engine: LedgerEngine = Depends(get_engine)
):
    """Change a payment's amount, date, method or notes"""
    update = unwrap(await engine.edit_payment(
        payment_id,
        amount=request.amount,
        interest_amount=request.interest_amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        notes=request.notes,
    ))
    return _update_response(update, "Payment updated successfully")


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: int,
    permanent: bool = False,
    engine: LedgerEngine = Depends(get_engine)
):
    """Reverse a payment"""
    update = unwrap(await engine.delete_payment(payment_id, permanent=permanent))
    return _update_response(update, "Payment deleted successfully")
