"""
Repayment Policy Module

Pure delinquency classification for the two loan types. Nothing here touches
storage; every function takes the loan, the amount repaid and the date to
evaluate at.

Weekly loans are scheduled in installments of principal / 10, whatever the
stored tenure. Tenure only caps the number of installments expected so far.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from .currency import Money
from .models import Loan, LoanStatus, LoanType


WEEKLY_INSTALLMENT_DIVISOR = 10
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class PolicyEvaluation:
    """Outcome of one evaluation, with the counts that produced it"""
    status: LoanStatus
    days_elapsed: int
    expected_installments: Optional[int] = None
    actual_installments: Optional[int] = None
    months_elapsed: Optional[int] = None


def installment_amount(loan: Loan) -> Money:
    """Weekly installment (EMI); full precision"""
    return loan.principal / WEEKLY_INSTALLMENT_DIVISOR


def days_elapsed(loan: Loan, as_of: date) -> int:
    """Whole days from the loan date to as_of (negative for future loans)"""
    return (as_of - loan.loan_date).days


def expected_installments(loan: Loan, as_of: date) -> int:
    """Installments due by as_of; the first one falls a week after the loan date"""
    weeks = days_elapsed(loan, as_of) // DAYS_PER_WEEK
    return max(0, min(weeks, loan.tenure))


def actual_installments(loan: Loan, total_paid: Money) -> int:
    """Whole installments covered by the amount repaid"""
    return max(0, total_paid.floor_div(installment_amount(loan)))


def evaluate_detailed(loan: Loan, total_paid: Optional[Money] = None,
                      as_of: Optional[date] = None) -> PolicyEvaluation:
    """
    Classify a loan.

    Args:
        loan: Loan to classify; its current status decides whether it is
            eligible for automatic classification at all
        total_paid: Principal repaid, defaults to loan.total_paid
        as_of: Evaluation date, defaults to today

    Returns:
        PolicyEvaluation with the new status and the counts behind it
    """
    if total_paid is None:
        total_paid = loan.total_paid
    if as_of is None:
        as_of = date.today()
    days = days_elapsed(loan, as_of)

    # Administrative states are only left through an explicit status change
    if loan.status.is_administrative:
        return PolicyEvaluation(status=loan.status, days_elapsed=days)

    if total_paid >= loan.principal:
        return PolicyEvaluation(status=LoanStatus.COMPLETED, days_elapsed=days)

    if loan.loan_type == LoanType.WEEKLY:
        expected = expected_installments(loan, as_of)
        actual = actual_installments(loan, total_paid)
        status = LoanStatus.OVERDUE if actual < expected else LoanStatus.ACTIVE
        return PolicyEvaluation(
            status=status,
            days_elapsed=days,
            expected_installments=expected,
            actual_installments=actual,
        )

    months = days // DAYS_PER_MONTH
    remaining = (loan.principal - total_paid).clamp_to_zero()
    if months > loan.tenure and remaining.is_positive():
        status = LoanStatus.OVERDUE
    else:
        status = LoanStatus.ACTIVE
    return PolicyEvaluation(status=status, days_elapsed=days, months_elapsed=months)


def evaluate_status(loan: Loan, total_paid: Optional[Money] = None,
                    as_of: Optional[date] = None) -> LoanStatus:
    """New status for a loan after a payment or during a sweep"""
    return evaluate_detailed(loan, total_paid, as_of).status


def is_sweep_candidate(loan: Loan) -> bool:
    """The overdue sweep only revisits loans that are not in a terminal state"""
    return loan.is_active and not loan.status.is_terminal


def weekly_due_dates(loan: Loan) -> List[date]:
    """Every installment due date of a weekly loan, one per tenure week"""
    return [loan.loan_date + timedelta(days=week * DAYS_PER_WEEK)
            for week in range(1, loan.tenure + 1)]


def next_weekly_due_date(loan: Loan) -> date:
    """Due date of the first installment not yet covered by repayments"""
    paid = actual_installments(loan, loan.total_paid)
    return loan.loan_date + timedelta(days=(paid + 1) * DAYS_PER_WEEK)


def is_weekly_overdue(loan: Loan, as_of: Optional[date] = None) -> bool:
    """True when a weekly loan has fallen behind its installment schedule"""
    if loan.loan_type != LoanType.WEEKLY or loan.status.is_terminal:
        return False
    return evaluate_detailed(loan, as_of=as_of).status == LoanStatus.OVERDUE
