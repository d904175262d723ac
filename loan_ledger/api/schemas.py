"""
Pydantic schemas for API requests, and response builders
"""

from datetime import date
from typing import Dict, Optional, Any
from pydantic import BaseModel, Field

from ..currency import Money
from ..models import Loan, Payment, DashboardStats, LoanWithCustomer


def money_to_str(money: Money) -> str:
    """Full precision amount as a string; clients round for display"""
    return money.to_storage()


# Loan schemas
class CreateLoanRequest(BaseModel):
    customer_id: int
    principal: str = Field(..., description="Decimal amount as string")
    loan_type: str = Field("weekly", description="weekly or monthlyInterest")
    loan_date: Optional[date] = None
    tenure: int = Field(10, description="Weeks for weekly loans, months for monthly-interest loans")
    due_date: Optional[date] = None
    monthly_interest_amount: Optional[str] = None
    book_no: Optional[str] = None
    notes: Optional[str] = None


class UpdateLoanStatusRequest(BaseModel):
    status: str = Field(..., description="pending, active, overdue, completed, closed, cancelled or defaulted")


# Payment schemas
class PaymentRequest(BaseModel):
    loan_id: int
    amount: str = Field(..., description="Decimal amount as string")
    payment_date: Optional[date] = None
    payment_method: str = "cash"
    notes: Optional[str] = None
    customer_id: Optional[int] = None
    receipt_number: Optional[str] = None


class MonthlyInterestPaymentRequest(BaseModel):
    loan_id: int
    interest_amount: str = "0"
    principal_amount: str = "0"
    payment_date: Optional[date] = None
    payment_method: str = "cash"
    notes: Optional[str] = None
    receipt_number: Optional[str] = None


class EditPaymentRequest(BaseModel):
    amount: Optional[str] = None
    interest_amount: Optional[str] = None
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


def loan_response(loan: Loan, customer_name: Optional[str] = None,
                  customer_phone: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "customer_id": loan.customer_id,
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "loan_type": loan.loan_type.value,
        "principal": money_to_str(loan.principal),
        "tenure": loan.tenure,
        "loan_date": loan.loan_date.isoformat(),
        "due_date": loan.due_date.isoformat() if loan.due_date else None,
        "total_amount": money_to_str(loan.total_amount),
        "total_paid": money_to_str(loan.total_paid),
        "remaining_amount": money_to_str(loan.remaining_amount),
        "total_interest_collected": money_to_str(loan.total_interest_collected),
        "monthly_interest_amount": money_to_str(loan.monthly_interest_amount),
        "status": loan.status.value,
        "last_payment_date": loan.last_payment_date.isoformat() if loan.last_payment_date else None,
        "book_no": loan.book_no,
        "notes": loan.notes,
        "is_active": loan.is_active,
    }


def listing_response(row: LoanWithCustomer) -> Dict[str, Any]:
    return loan_response(row.loan, row.customer_name, row.customer_phone)


def payment_response(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "loan_id": payment.loan_id,
        "customer_id": payment.customer_id,
        "amount": money_to_str(payment.amount),
        "interest_amount": money_to_str(payment.interest_amount),
        "principal_amount": money_to_str(payment.principal_amount),
        "payment_date": payment.payment_date.isoformat(),
        "payment_method": payment.payment_method.value,
        "payment_type": payment.payment_type.value,
        "receipt_number": payment.receipt_number,
        "notes": payment.notes,
        "is_active": payment.is_active,
    }


def dashboard_response(stats: DashboardStats) -> Dict[str, Any]:
    return {
        "total_given": money_to_str(stats.total_given),
        "total_received": money_to_str(stats.total_received),
        "outstanding": money_to_str(stats.outstanding),
        "today_collection": money_to_str(stats.today_collection),
        "active_loans": stats.active_loans,
        "overdue_loans": stats.overdue_loans,
    }
