"""
Transaction Log Module

Bank-style audit trail of money given to and received from customers. Each
entry carries the customer's running balance (credits minus debits) after it
was recorded. The ledger engine records entries after its own mutations commit
and treats failures here as non-fatal.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional

from .async_storage import AsyncStorageInterface
from .currency import Money
from .models import TransactionEntry, TransactionType


TRANSACTIONS_TABLE = "transactions"


@dataclass(frozen=True)
class TransactionSummary:
    """Totals over a set of transaction entries"""
    total_credits: Money
    total_debits: Money
    credit_count: int
    debit_count: int

    @property
    def net(self) -> Money:
        return self.total_credits - self.total_debits

    @property
    def transaction_count(self) -> int:
        return self.credit_count + self.debit_count


class TransactionRecorder:
    """Records credits and debits per customer"""

    def __init__(self, storage: AsyncStorageInterface):
        self.storage = storage
        self.table = TRANSACTIONS_TABLE

    async def record_credit(self, customer_id: int, amount: Money, loan_id: Optional[int] = None,
                            description: str = "Payment received",
                            transaction_date: Optional[date] = None,
                            reference_number: Optional[str] = None) -> TransactionEntry:
        """Record money received from a customer"""
        return await self._record(TransactionType.CREDIT, customer_id, amount, loan_id,
                                  description, transaction_date, reference_number)

    async def record_debit(self, customer_id: int, amount: Money, loan_id: Optional[int] = None,
                           description: str = "Loan disbursed",
                           transaction_date: Optional[date] = None,
                           reference_number: Optional[str] = None) -> TransactionEntry:
        """Record money given to a customer"""
        return await self._record(TransactionType.DEBIT, customer_id, amount, loan_id,
                                  description, transaction_date, reference_number)

    async def _record(self, transaction_type: TransactionType, customer_id: int, amount: Money,
                      loan_id: Optional[int], description: str,
                      transaction_date: Optional[date],
                      reference_number: Optional[str]) -> TransactionEntry:
        if not amount.is_positive():
            raise ValueError("Transaction amount must be positive")

        async with self.storage.atomic():
            balance = await self.get_customer_balance(customer_id)
            if transaction_type == TransactionType.CREDIT:
                balance = balance + amount
            else:
                balance = balance - amount

            entry = TransactionEntry(
                customer_id=customer_id,
                loan_id=loan_id,
                transaction_type=transaction_type,
                amount=amount,
                transaction_date=transaction_date or date.today(),
                description=description,
                reference_number=reference_number,
                running_balance=balance,
            )
            entry_id = await self.storage.insert(self.table, entry.to_dict())
        return replace(entry, id=entry_id)

    async def get_customer_transactions(self, customer_id: int,
                                        transaction_type: Optional[TransactionType] = None,
                                        start_date: Optional[date] = None,
                                        end_date: Optional[date] = None) -> List[TransactionEntry]:
        """Active entries for a customer, newest first"""
        filters = {'customer_id': customer_id, 'is_active': True}
        if transaction_type is not None:
            filters['transaction_type'] = transaction_type.value
        entries = [TransactionEntry.from_dict(row) for row in await self.storage.find(self.table, filters)]
        if start_date is not None:
            entries = [e for e in entries if e.transaction_date >= start_date]
        if end_date is not None:
            entries = [e for e in entries if e.transaction_date <= end_date]
        entries.sort(key=lambda e: (e.transaction_date, e.id), reverse=True)
        return entries

    async def get_customer_balance(self, customer_id: int) -> Money:
        """Credits minus debits over a customer's active entries"""
        summary = await self.get_summary(customer_id=customer_id)
        return summary.net

    async def get_summary(self, customer_id: Optional[int] = None,
                          start_date: Optional[date] = None,
                          end_date: Optional[date] = None) -> TransactionSummary:
        """Credit and debit totals, optionally for one customer or period"""
        filters = {'is_active': True}
        if customer_id is not None:
            filters['customer_id'] = customer_id
        rows = await self.storage.find(self.table, filters)

        credits, debits = Money.zero(), Money.zero()
        credit_count = debit_count = 0
        for row in rows:
            entry = TransactionEntry.from_dict(row)
            if start_date is not None and entry.transaction_date < start_date:
                continue
            if end_date is not None and entry.transaction_date > end_date:
                continue
            if entry.transaction_type == TransactionType.CREDIT:
                credits = credits + entry.amount
                credit_count += 1
            else:
                debits = debits + entry.amount
                debit_count += 1

        return TransactionSummary(
            total_credits=credits,
            total_debits=debits,
            credit_count=credit_count,
            debit_count=debit_count,
        )
