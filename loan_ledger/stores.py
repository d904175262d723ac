"""
Record Stores Module

Logical persistence operations for payments, loans and customers on top of the
async storage boundary. Stores translate between typed records and storage
rows, and wrap every backend error as PersistenceFailure.
"""

from dataclasses import replace
from datetime import datetime, timezone, date
from typing import Dict, List, Optional, Any

from .async_storage import AsyncStorageInterface
from .currency import Money
from .errors import LedgerError, PersistenceFailure
from .logging_config import get_logger, log_action
from .models import (
    Loan, LoanStatus, Payment, Customer, LoanWithCustomer, PaginationResult
)


logger = get_logger("stores")

LOANS_TABLE = "loans"
PAYMENTS_TABLE = "payments"
CUSTOMERS_TABLE = "customers"


class RecordStore:
    """Shared plumbing for the record stores"""

    table: str = ""

    def __init__(self, storage: AsyncStorageInterface):
        self.storage = storage

    async def _guard(self, operation: str, awaitable):
        try:
            return await awaitable
        except LedgerError:
            raise
        except Exception as e:
            log_action(logger, "error", f"Storage error during {operation}: {e}",
                       action=operation, extra={"table": self.table}, exc_info=True)
            raise PersistenceFailure(operation, e) from e

    async def _find_active(self, operation: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        criteria = dict(filters)
        criteria['is_active'] = True
        return await self._guard(operation, self.storage.find(self.table, criteria))


def _newest_first(rows: List[Dict[str, Any]], date_key: str) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda row: (row.get(date_key) or "", row['id']), reverse=True)


class PaymentStore(RecordStore):
    """Persistence boundary for payment events"""

    table = PAYMENTS_TABLE

    async def insert(self, payment: Payment) -> Payment:
        """Persist a new payment and return it with its assigned id"""
        payment_id = await self._guard(
            "save payment", self.storage.insert(self.table, payment.to_dict())
        )
        return replace(payment, id=payment_id)

    async def get_by_id(self, payment_id: int, include_inactive: bool = False) -> Optional[Payment]:
        """Get a payment; soft-deleted payments are hidden unless asked for"""
        row = await self._guard("load payment", self.storage.load(self.table, payment_id))
        if row is None:
            return None
        if not include_inactive and not row.get('is_active', True):
            return None
        return Payment.from_dict(row)

    async def get_by_loan(self, loan_id: int) -> List[Payment]:
        """Active payments for a loan, newest first"""
        rows = await self._find_active("load payments", {'loan_id': loan_id})
        return [Payment.from_dict(row) for row in _newest_first(rows, 'payment_date')]

    async def get_by_customer(self, customer_id: int) -> List[Payment]:
        """Active payments for a customer, newest first"""
        rows = await self._find_active("load payments", {'customer_id': customer_id})
        return [Payment.from_dict(row) for row in _newest_first(rows, 'payment_date')]

    async def get_by_date_range(self, start: date, end: date) -> List[Payment]:
        """Active payments dated between start and end, both inclusive"""
        rows = await self._find_active("load payments", {})
        start_key, end_key = start.isoformat(), end.isoformat()
        in_range = [row for row in rows if start_key <= row['payment_date'] <= end_key]
        return [Payment.from_dict(row) for row in _newest_first(in_range, 'payment_date')]

    async def update(self, payment: Payment) -> int:
        """Write back a changed payment; returns the number of affected rows"""
        payment = replace(payment, updated_at=datetime.now(timezone.utc))
        return await self._guard(
            "update payment", self.storage.update(self.table, payment.id, payment.to_dict())
        )

    async def soft_delete(self, payment_id: int) -> int:
        """Mark a payment inactive; returns the number of affected rows"""
        payment = await self.get_by_id(payment_id)
        if payment is None:
            return 0
        return await self.update(replace(payment, is_active=False))

    async def hard_delete(self, payment_id: int) -> int:
        """Remove a payment row permanently"""
        return await self._guard("delete payment", self.storage.delete(self.table, payment_id))

    async def soft_delete_by_loan(self, loan_id: int) -> int:
        """Mark every active payment of one loan inactive"""
        affected = 0
        for payment in await self.get_by_loan(loan_id):
            affected += await self.update(replace(payment, is_active=False))
        return affected

    async def hard_delete_by_loan(self, loan_id: int) -> int:
        """Remove every payment row of one loan, active or not"""
        rows = await self._guard("load payments", self.storage.find(self.table, {'loan_id': loan_id}))
        affected = 0
        for row in rows:
            affected += await self.hard_delete(row['id'])
        return affected

    async def sum_amount(self, filters: Optional[Dict[str, Any]] = None) -> Money:
        """Sum of active payment amounts matching equality filters"""
        rows = await self._find_active("sum payments", filters or {})
        total = Money.zero()
        for row in rows:
            total = total + Money.parse(row['amount'])
        return total

    async def count_matching(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Number of active payments matching equality filters"""
        criteria = dict(filters or {})
        criteria['is_active'] = True
        return await self._guard("count payments", self.storage.count(self.table, criteria))


class LoanStore(RecordStore):
    """Persistence boundary for loans"""

    table = LOANS_TABLE

    async def insert(self, loan: Loan) -> Loan:
        """Persist a new loan and return it with its assigned id"""
        loan_id = await self._guard("save loan", self.storage.insert(self.table, loan.to_dict()))
        return replace(loan, id=loan_id)

    async def get_by_id(self, loan_id: int, include_inactive: bool = False) -> Optional[Loan]:
        row = await self._guard("load loan", self.storage.load(self.table, loan_id))
        if row is None:
            return None
        if not include_inactive and not row.get('is_active', True):
            return None
        return Loan.from_dict(row)

    async def get_all_active(self) -> List[Loan]:
        """All active loans, newest first"""
        rows = await self._find_active("load loans", {})
        return [Loan.from_dict(row) for row in sorted(rows, key=lambda row: row['id'], reverse=True)]

    async def get_by_customer(self, customer_id: int) -> List[Loan]:
        rows = await self._find_active("load loans", {'customer_id': customer_id})
        return [Loan.from_dict(row) for row in sorted(rows, key=lambda row: row['id'], reverse=True)]

    async def update(self, loan: Loan) -> int:
        """Write back a changed loan; returns the number of affected rows"""
        return await self._guard("update loan", self.storage.update(self.table, loan.id, loan.to_dict()))

    async def soft_delete(self, loan_id: int) -> int:
        """Mark exactly this loan inactive"""
        loan = await self.get_by_id(loan_id)
        if loan is None:
            return 0
        return await self.update(replace(loan, is_active=False, updated_at=datetime.now(timezone.utc)))

    async def delete_entirely(self, loan_id: int) -> int:
        """
        Remove a loan row and all of its payment rows as one atomic unit.

        Returns the number of loan rows removed (0 or 1).
        """
        async with self.storage.atomic():
            await PaymentStore(self.storage).hard_delete_by_loan(loan_id)
            return await self._guard("delete loan", self.storage.delete(self.table, loan_id))

    async def get_with_customers(self) -> List[LoanWithCustomer]:
        """Active loans joined with their customer's name and phone"""
        loans = await self.get_all_active()
        customer_rows = await self._guard("load customers", self.storage.load_all(CUSTOMERS_TABLE))
        customers = {row['id']: row for row in customer_rows}
        listing = []
        for loan in loans:
            customer = customers.get(loan.customer_id, {})
            listing.append(LoanWithCustomer(
                loan=loan,
                customer_name=customer.get('name'),
                customer_phone=customer.get('phone'),
            ))
        return listing

    async def get_paginated(self, page: int = 1, page_size: int = 20,
                            status: Optional[LoanStatus] = None) -> PaginationResult:
        """One page of active loans, newest first"""
        page = max(page, 1)
        loans = await self.get_all_active()
        if status is not None:
            loans = [loan for loan in loans if loan.status == status]
        start = (page - 1) * page_size
        return PaginationResult(
            items=loans[start:start + page_size],
            total_count=len(loans),
            current_page=page,
            page_size=page_size,
        )

    async def get_count(self, status: Optional[LoanStatus] = None) -> int:
        """Number of active loans, optionally in one status"""
        filters = {'is_active': True}
        if status is not None:
            filters['status'] = status.value
        return await self._guard("count loans", self.storage.count(self.table, filters))


class CustomerStore(RecordStore):
    """Customer reference rows"""

    table = CUSTOMERS_TABLE

    async def insert(self, customer: Customer) -> Customer:
        customer_id = await self._guard("save customer", self.storage.insert(self.table, customer.to_dict()))
        return replace(customer, id=customer_id)

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        row = await self._guard("load customer", self.storage.load(self.table, customer_id))
        return Customer.from_dict(row) if row else None

    async def get_all(self) -> List[Customer]:
        rows = await self._find_active("load customers", {})
        return [Customer.from_dict(row) for row in rows]
