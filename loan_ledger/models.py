"""
Ledger Records Module

Typed records for loans, payments, customers and audit entries. ``to_dict`` and
``from_dict`` are the only place where records meet raw storage rows; the rest
of the package works with these dataclasses.
"""

from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Dict, Optional, Any
from enum import Enum

from .currency import Money
from .errors import InvalidAmount


class LoanType(Enum):
    """Repayment policy of a loan"""
    WEEKLY = "weekly"                        # Fixed-divisor installment loan
    MONTHLY_INTEREST = "monthlyInterest"     # Interest-only, principal repaid separately


class LoanStatus(Enum):
    """Loan delinquency states"""
    PENDING = "pending"
    ACTIVE = "active"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    DEFAULTED = "defaulted"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_administrative(self) -> bool:
        """States only reachable through an explicit status change"""
        return self in ADMINISTRATIVE_STATUSES


TERMINAL_STATUSES = frozenset({
    LoanStatus.COMPLETED, LoanStatus.CLOSED, LoanStatus.CANCELLED, LoanStatus.DEFAULTED
})
ADMINISTRATIVE_STATUSES = frozenset({
    LoanStatus.CLOSED, LoanStatus.CANCELLED, LoanStatus.DEFAULTED
})
# Loans counted as money still out in the field
OUTSTANDING_STATUSES = frozenset({
    LoanStatus.PENDING, LoanStatus.ACTIVE, LoanStatus.OVERDUE
})


class PaymentMethod(Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    ELECTRONIC = "electronic"
    OTHER = "other"


class PaymentType(Enum):
    FULL_PAYMENT = "full_payment"
    PARTIAL_PAYMENT = "partial_payment"
    INTEREST_ONLY = "interest_only"
    PENALTY_PAYMENT = "penalty_payment"


class TransactionType(Enum):
    """Direction of an audit-trail entry"""
    CREDIT = "credit"    # Money received from the customer
    DEBIT = "debit"      # Money given to the customer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(value[:10])


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return _utcnow()
    return datetime.fromisoformat(value)


def _date_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value) -> Money:
    if value is None:
        return Money.zero()
    if isinstance(value, Money):
        return value
    return Money.parse(str(value))


@dataclass
class Loan:
    """Loan disbursed to a customer with its running totals"""
    customer_id: int
    principal: Money
    loan_type: LoanType
    loan_date: date
    tenure: int = 10
    due_date: Optional[date] = None
    total_paid: Money = field(default_factory=Money.zero)
    total_interest_collected: Money = field(default_factory=Money.zero)
    monthly_interest_amount: Money = field(default_factory=Money.zero)
    status: LoanStatus = LoanStatus.ACTIVE
    last_payment_date: Optional[date] = None
    book_no: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.principal.is_positive():
            raise InvalidAmount("Loan amount must be greater than zero",
                                details={"principal": self.principal.to_storage()})
        if self.tenure <= 0:
            raise InvalidAmount("Tenure must be at least one period",
                                details={"tenure": self.tenure})

    @property
    def total_amount(self) -> Money:
        """Amount owed back; interest is tracked separately so this is the principal"""
        return self.principal

    @property
    def remaining_amount(self) -> Money:
        return (self.principal - self.total_paid).clamp_to_zero()

    @property
    def is_weekly(self) -> bool:
        return self.loan_type == LoanType.WEEKLY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'principal': self.principal.to_storage(),
            'tenure': self.tenure,
            'loan_type': self.loan_type.value,
            'loan_date': self.loan_date.isoformat(),
            'due_date': _date_to_str(self.due_date),
            'total_amount': self.total_amount.to_storage(),
            'total_paid': self.total_paid.to_storage(),
            'remaining_amount': self.remaining_amount.to_storage(),
            'total_interest_collected': self.total_interest_collected.to_storage(),
            'monthly_interest_amount': self.monthly_interest_amount.to_storage(),
            'status': self.status.value,
            'last_payment_date': _date_to_str(self.last_payment_date),
            'book_no': self.book_no,
            'notes': self.notes,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        """Create instance from a storage row"""
        return cls(
            id=data.get('id'),
            customer_id=int(data['customer_id']),
            principal=_money(data['principal']),
            tenure=int(data.get('tenure') or 10),
            loan_type=LoanType(data['loan_type']),
            loan_date=_parse_date(data['loan_date']),
            due_date=_parse_date(data.get('due_date')),
            total_paid=_money(data.get('total_paid')),
            total_interest_collected=_money(data.get('total_interest_collected')),
            monthly_interest_amount=_money(data.get('monthly_interest_amount')),
            status=LoanStatus(data.get('status', LoanStatus.ACTIVE.value)),
            last_payment_date=_parse_date(data.get('last_payment_date')),
            book_no=data.get('book_no'),
            notes=data.get('notes'),
            is_active=bool(data.get('is_active', True)),
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )


@dataclass
class Payment:
    """One collection event against a loan"""
    loan_id: int
    customer_id: int
    amount: Money
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_type: PaymentType = PaymentType.PARTIAL_PAYMENT
    interest_amount: Money = field(default_factory=Money.zero)
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.amount.is_positive():
            raise InvalidAmount("Payment amount must be greater than zero",
                                details={"amount": self.amount.to_storage()})
        if self.interest_amount.is_negative() or self.interest_amount > self.amount:
            raise InvalidAmount("Interest portion must be between zero and the payment amount",
                                details={"interest_amount": self.interest_amount.to_storage()})

    @property
    def principal_amount(self) -> Money:
        """Portion of the payment that repays principal"""
        return self.amount - self.interest_amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'loan_id': self.loan_id,
            'customer_id': self.customer_id,
            'amount': self.amount.to_storage(),
            'interest_amount': self.interest_amount.to_storage(),
            'payment_date': self.payment_date.isoformat(),
            'payment_method': self.payment_method.value,
            'payment_type': self.payment_type.value,
            'receipt_number': self.receipt_number,
            'notes': self.notes,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        """Create instance from a storage row"""
        return cls(
            id=data.get('id'),
            loan_id=int(data['loan_id']),
            customer_id=int(data['customer_id']),
            amount=_money(data['amount']),
            interest_amount=_money(data.get('interest_amount')),
            payment_date=_parse_date(data['payment_date']),
            payment_method=PaymentMethod(data.get('payment_method', PaymentMethod.CASH.value)),
            payment_type=PaymentType(data.get('payment_type', PaymentType.PARTIAL_PAYMENT.value)),
            receipt_number=data.get('receipt_number'),
            notes=data.get('notes'),
            is_active=bool(data.get('is_active', True)),
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )


@dataclass
class Customer:
    """Customer reference row, used to label and search loan listings"""
    name: str
    phone: Optional[str] = None
    is_active: bool = True
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'phone': self.phone, 'is_active': self.is_active}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        return cls(
            id=data.get('id'),
            name=data.get('name', ''),
            phone=data.get('phone'),
            is_active=bool(data.get('is_active', True)),
        )


@dataclass
class TransactionEntry:
    """Audit-trail entry recording money given to or received from a customer"""
    customer_id: int
    transaction_type: TransactionType
    amount: Money
    transaction_date: date
    description: str = ""
    loan_id: Optional[int] = None
    reference_number: Optional[str] = None
    running_balance: Money = field(default_factory=Money.zero)
    is_active: bool = True
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'loan_id': self.loan_id,
            'transaction_type': self.transaction_type.value,
            'amount': self.amount.to_storage(),
            'transaction_date': self.transaction_date.isoformat(),
            'description': self.description,
            'reference_number': self.reference_number,
            'running_balance': self.running_balance.to_storage(),
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionEntry':
        return cls(
            id=data.get('id'),
            customer_id=int(data['customer_id']),
            loan_id=data.get('loan_id'),
            transaction_type=TransactionType(data['transaction_type']),
            amount=_money(data['amount']),
            transaction_date=_parse_date(data['transaction_date']),
            description=data.get('description') or "",
            reference_number=data.get('reference_number'),
            running_balance=_money(data.get('running_balance')),
            is_active=bool(data.get('is_active', True)),
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )


@dataclass
class LoanWithCustomer:
    """Loan listing row carrying the customer's name and phone"""
    loan: Loan
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


@dataclass
class PaginationResult:
    """One page of a listing"""
    items: list
    total_count: int
    current_page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.current_page * self.page_size < self.total_count

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1


@dataclass(frozen=True)
class DashboardStats:
    """Aggregate figures shown on the dashboard"""
    total_given: Money
    total_received: Money
    outstanding: Money
    today_collection: Money
    active_loans: int = 0
    overdue_loans: int = 0
