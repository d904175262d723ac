"""
Ledger Engine Module

Applies disbursements, payments, edits and reversals to loan running totals,
classifies delinquency through the repayment policy, and serves cached
aggregates to the presentation layer.

Every public operation returns a Result. Mutations on one loan are serialized
with a per-loan lock, and each payment insert or reversal runs in the same
storage transaction as the loan update it causes.
"""

import asyncio
import weakref
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from .async_storage import AsyncStorageInterface, create_async_storage
from .cache import AggregateCache, RefreshDebouncer, DASHBOARD_KEY, list_key
from .config import LedgerConfig
from .currency import Money, parse_positive_amount, parse_non_negative_amount
from .errors import (
    LedgerError, InvalidAmount, LoanNotFound, PaymentNotFound,
    CustomerResolutionFailed, ConcurrencyConflict
)
from .events import (
    EventDispatcher, EventPayload, LedgerEvent, create_loan_event, create_payment_event
)
from .logging_config import get_logger, log_action
from .models import (
    Loan, LoanType, LoanStatus, Payment, PaymentMethod, PaymentType, Customer,
    LoanWithCustomer, DashboardStats, OUTSTANDING_STATUSES
)
from .policy import evaluate_status, is_sweep_candidate, DAYS_PER_WEEK, DAYS_PER_MONTH
from .result import Result, ErrorType
from .stores import LoanStore, PaymentStore, CustomerStore
from .transactions import TransactionRecorder


logger = get_logger("engine")

UNEXPECTED_ERROR_MESSAGE = "Something went wrong, please try again"

AmountInput = Union[Money, str, int, Decimal]


@dataclass
class LedgerUpdate:
    """Loan state after a mutation, with the payment it involved"""
    loan: Loan
    payment: Optional[Payment] = None


@dataclass
class SweepReport:
    """Outcome of an overdue sweep"""
    checked: int = 0
    changed: Dict[int, LoanStatus] = field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidAmount(f"Unknown {what}: {value}", details={what: value})


class LedgerEngine:
    """
    Loan ledger and repayment engine.

    Args:
        storage: Async storage boundary shared by all record stores
        cache: Aggregate cache owned by this engine
        recorder: Audit-trail recorder; None disables the transaction log
        events: Dispatcher notified after mutations and refreshes
        clock: Returns today's date; status evaluation and defaults use it
        refresh_debounce_seconds: Window for coalescing refresh notifications
    """

    def __init__(self, storage: AsyncStorageInterface,
                 cache: Optional[AggregateCache] = None,
                 recorder: Optional[TransactionRecorder] = None,
                 events: Optional[EventDispatcher] = None,
                 clock: Callable[[], date] = date.today,
                 refresh_debounce_seconds: float = 0.1):
        self.storage = storage
        self.loans = LoanStore(storage)
        self.payments = PaymentStore(storage)
        self.customers = CustomerStore(storage)
        self.cache = cache if cache is not None else AggregateCache()
        self.recorder = recorder
        self.events = events if events is not None else EventDispatcher()
        self._today = clock
        # A lock lives only while some operation on its loan holds or awaits it
        self._loan_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._debouncer = RefreshDebouncer(self._publish_refresh, refresh_debounce_seconds)
        self._search = ""
        self._status_filter: Optional[LoanStatus] = None

    @classmethod
    def from_config(cls, config: LedgerConfig, **kwargs) -> 'LedgerEngine':
        """Build an engine with storage, cache and transaction log set up from config"""
        storage = create_async_storage(config.storage_backend, config.database_path)
        recorder = TransactionRecorder(storage) if config.enable_transaction_log else None
        return cls(
            storage,
            cache=AggregateCache(ttl_seconds=config.cache_ttl_seconds),
            recorder=recorder,
            refresh_debounce_seconds=config.refresh_debounce_seconds,
            **kwargs
        )

    async def close(self) -> None:
        """Drop any waiting refresh and close storage"""
        self._debouncer.cancel()
        await self.storage.close()

    # ------------------------------------------------------------------
    # Plumbing

    def today(self) -> date:
        return self._today()

    def _lock_for(self, loan_id: int) -> asyncio.Lock:
        lock = self._loan_locks.get(loan_id)
        if lock is None:
            lock = self._loan_locks[loan_id] = asyncio.Lock()
        return lock

    async def _run(self, action: str, operation, **context) -> Result:
        try:
            value = await operation()
        except LedgerError as e:
            log_action(logger, "warning", f"{action} failed: {e.message}", action=action,
                       extra=e.details or None, **context)
            return Result.from_error(e)
        except Exception as e:
            log_action(logger, "error", f"Unexpected error in {action}: {e}", action=action,
                       exc_info=True, **context)
            return Result.fail(UNEXPECTED_ERROR_MESSAGE, ErrorType.UNEXPECTED)
        return Result.ok(value)

    async def _read_cached(self, action: str, key, compute) -> Result:
        try:
            lookup = await self.cache.get_or_compute(key, compute)
        except LedgerError as e:
            log_action(logger, "warning", f"{action} failed: {e.message}", action=action,
                       extra=e.details or None)
            return Result.from_error(e)
        except Exception as e:
            log_action(logger, "error", f"Unexpected error in {action}: {e}", action=action, exc_info=True)
            return Result.fail(UNEXPECTED_ERROR_MESSAGE, ErrorType.UNEXPECTED)
        return Result.ok(lookup.value, warning=lookup.warning)

    async def _require_loan(self, loan_id: int, include_inactive: bool = False) -> Loan:
        loan = await self.loans.get_by_id(loan_id, include_inactive=include_inactive)
        if loan is None:
            raise LoanNotFound(loan_id)
        return loan

    async def _require_payment(self, payment_id: int) -> Payment:
        payment = await self.payments.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFound(payment_id)
        return payment

    async def _save_loan(self, loan: Loan) -> None:
        affected = await self.loans.update(loan)
        if affected == 0:
            # The row was read in this transaction, so it was removed underneath us
            raise ConcurrencyConflict(loan.id)

    def _recalculate(self, loan: Loan, total_paid: Money,
                     total_interest_collected: Optional[Money] = None,
                     **changes) -> Loan:
        """Loan with new totals and the status the policy assigns to them"""
        total_paid = total_paid.clamp_to_zero()
        if total_interest_collected is None:
            total_interest_collected = loan.total_interest_collected
        status = evaluate_status(loan, total_paid, self.today())
        return replace(
            loan,
            total_paid=total_paid,
            total_interest_collected=total_interest_collected.clamp_to_zero(),
            status=status,
            updated_at=_utcnow(),
            **changes
        )

    async def _latest_payment_date(self, loan_id: int) -> Optional[date]:
        remaining = await self.payments.get_by_loan(loan_id)
        if not remaining:
            return None
        return max(payment.payment_date for payment in remaining)

    def _mutated(self, event: EventPayload) -> None:
        self.cache.invalidate()
        self.events.publish(event)
        self._debouncer.request()

    async def _publish_refresh(self) -> None:
        self.events.publish(EventPayload(
            event_type=LedgerEvent.DATA_REFRESHED,
            entity_type="ledger",
            entity_id=None,
            data={"generation": self.cache.generation},
        ))

    async def _audit(self, direction: str, **kwargs) -> None:
        """Record an audit-trail entry; failures are logged and never propagated"""
        if self.recorder is None:
            return
        record = self.recorder.record_credit if direction == "credit" else self.recorder.record_debit
        try:
            await record(**kwargs)
        except Exception as e:
            log_action(logger, "warning", f"Failed to record {direction} transaction: {e}",
                       action="record_transaction", loan_id=kwargs.get('loan_id'),
                       customer_id=kwargs.get('customer_id'), exc_info=True)

    # ------------------------------------------------------------------
    # Loans

    async def create_loan(self, customer_id: int, principal: AmountInput,
                          loan_type: Union[LoanType, str] = LoanType.WEEKLY,
                          loan_date: Optional[date] = None, tenure: int = 10,
                          due_date: Optional[date] = None,
                          monthly_interest_amount: Optional[AmountInput] = None,
                          book_no: Optional[str] = None,
                          notes: Optional[str] = None) -> Result[Loan]:
        """Disburse a new loan; it starts out active"""

        async def operation():
            amount = parse_positive_amount(principal, "Loan amount")
            kind = _coerce_enum(LoanType, loan_type, "loan type")
            interest = parse_non_negative_amount(monthly_interest_amount, "Monthly interest")
            if not customer_id or customer_id <= 0:
                raise CustomerResolutionFailed()

            start = loan_date or self.today()
            period = DAYS_PER_WEEK if kind == LoanType.WEEKLY else DAYS_PER_MONTH
            loan = await self.loans.insert(Loan(
                customer_id=customer_id,
                principal=amount,
                loan_type=kind,
                loan_date=start,
                tenure=tenure,
                due_date=due_date or start + timedelta(days=period * tenure),
                monthly_interest_amount=interest,
                book_no=book_no,
                notes=notes,
            ))
            log_action(logger, "info", "Loan created", action="create_loan",
                       loan_id=loan.id, customer_id=customer_id,
                       extra={"principal": amount.to_storage(), "loan_type": kind.value})
            self._mutated(create_loan_event(LedgerEvent.LOAN_CREATED, loan))

            description = ("Weekly Loan disbursed" if kind == LoanType.WEEKLY
                           else "Monthly Interest Loan disbursed")
            await self._audit("debit", customer_id=customer_id, amount=amount, loan_id=loan.id,
                              description=description, transaction_date=start)
            return loan

        return await self._run("create_loan", operation, customer_id=customer_id)

    async def update_loan_status(self, loan_id: int, status: Union[LoanStatus, str]) -> Result[Loan]:
        """Administrative status change, the only way into or out of closed/cancelled/defaulted"""

        async def operation():
            new_status = _coerce_enum(LoanStatus, status, "loan status")
            async with self._lock_for(loan_id):
                loan = await self._require_loan(loan_id)
                previous = loan.status
                updated = replace(loan, status=new_status, updated_at=_utcnow())
                await self._save_loan(updated)
            log_action(logger, "info", f"Loan status changed {previous.value} -> {new_status.value}",
                       action="update_loan_status", loan_id=loan_id)
            self._mutated(create_loan_event(LedgerEvent.LOAN_STATUS_CHANGED, updated,
                                            previous_status=previous.value))
            return updated

        return await self._run("update_loan_status", operation, loan_id=loan_id)

    async def delete_loan(self, loan_id: int, permanent: bool = False) -> Result[Loan]:
        """
        Delete a loan and its payments.

        The soft variant deactivates exactly this loan and its payments. The
        permanent variant removes the loan row and all its payment rows in one
        transaction.
        """

        async def operation():
            async with self._lock_for(loan_id):
                loan = await self._require_loan(loan_id, include_inactive=permanent)
                if permanent:
                    removed = await self.loans.delete_entirely(loan_id)
                    payments_affected = None
                else:
                    async with self.storage.atomic():
                        payments_affected = await self.payments.soft_delete_by_loan(loan_id)
                        removed = await self.loans.soft_delete(loan_id)
                if removed == 0:
                    raise LoanNotFound(loan_id)
            log_action(logger, "info", "Loan deleted", action="delete_loan",
                       loan_id=loan_id, customer_id=loan.customer_id,
                       extra={"permanent": permanent, "payments_deactivated": payments_affected})
            self._mutated(create_loan_event(LedgerEvent.LOAN_DELETED, loan, permanent=permanent))
            return replace(loan, is_active=False)

        return await self._run("delete_loan", operation, loan_id=loan_id)

    # ------------------------------------------------------------------
    # Payments

    async def apply_payment(self, loan_id: int, amount: AmountInput,
                            payment_date: Optional[date] = None,
                            payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
                            notes: Optional[str] = None,
                            customer_id: Optional[int] = None,
                            receipt_number: Optional[str] = None) -> Result[LedgerUpdate]:
        """Record a payment against a loan and recompute its totals and status"""

        async def operation():
            money = parse_positive_amount(amount)
            method = _coerce_enum(PaymentMethod, payment_method, "payment method")
            paid_on = payment_date or self.today()

            async with self._lock_for(loan_id):
                loan = await self._require_loan(loan_id)
                resolved_customer = customer_id or loan.customer_id
                if not resolved_customer:
                    raise CustomerResolutionFailed(loan_id)

                async with self.storage.atomic():
                    payment = await self.payments.insert(Payment(
                        loan_id=loan_id,
                        customer_id=resolved_customer,
                        amount=money,
                        payment_date=paid_on,
                        payment_method=method,
                        payment_type=(PaymentType.FULL_PAYMENT
                                      if loan.total_paid + money >= loan.principal
                                      else PaymentType.PARTIAL_PAYMENT),
                        receipt_number=receipt_number,
                        notes=notes,
                    ))
                    loan = await self._require_loan(loan_id)
                    updated = self._recalculate(loan, loan.total_paid + money,
                                                last_payment_date=paid_on)
                    await self._save_loan(updated)

            log_action(logger, "info", "Payment applied", action="apply_payment",
                       loan_id=loan_id, payment_id=payment.id, customer_id=resolved_customer,
                       extra={"amount": money.to_storage(), "status": updated.status.value})
            self._mutated(create_payment_event(LedgerEvent.PAYMENT_APPLIED, payment,
                                               loan_status=updated.status.value))
            await self._audit("credit", customer_id=resolved_customer, amount=money, loan_id=loan_id,
                              description="Payment received", transaction_date=paid_on,
                              reference_number=receipt_number)
            return LedgerUpdate(loan=updated, payment=payment)

        return await self._run("apply_payment", operation, loan_id=loan_id)

    async def apply_monthly_interest_payment(self, loan_id: int,
                                             interest_amount: Optional[AmountInput] = None,
                                             principal_amount: Optional[AmountInput] = None,
                                             payment_date: Optional[date] = None,
                                             payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
                                             notes: Optional[str] = None,
                                             receipt_number: Optional[str] = None) -> Result[LedgerUpdate]:
        """
        Record a combined interest and principal payment on a monthly-interest loan.

        Only the principal portion counts toward total_paid; the interest
        portion goes to total_interest_collected.
        """

        async def operation():
            interest = parse_non_negative_amount(interest_amount, "Interest amount")
            principal = parse_non_negative_amount(principal_amount, "Principal amount")
            total = interest + principal
            if not total.is_positive():
                raise InvalidAmount("Payment amount must be greater than zero")
            method = _coerce_enum(PaymentMethod, payment_method, "payment method")
            paid_on = payment_date or self.today()

            async with self._lock_for(loan_id):
                loan = await self._require_loan(loan_id)
                if loan.loan_type != LoanType.MONTHLY_INTEREST:
                    raise InvalidAmount("Interest payments only apply to monthly interest loans",
                                        details={"loan_id": loan_id, "loan_type": loan.loan_type.value})

                if principal.is_zero():
                    payment_type = PaymentType.INTEREST_ONLY
                elif loan.total_paid + principal >= loan.principal:
                    payment_type = PaymentType.FULL_PAYMENT
                else:
                    payment_type = PaymentType.PARTIAL_PAYMENT

                async with self.storage.atomic():
                    payment = await self.payments.insert(Payment(
                        loan_id=loan_id,
                        customer_id=loan.customer_id,
                        amount=total,
                        interest_amount=interest,
                        payment_date=paid_on,
                        payment_method=method,
                        payment_type=payment_type,
                        receipt_number=receipt_number,
                        notes=notes,
                    ))
                    loan = await self._require_loan(loan_id)
                    updated = self._recalculate(
                        loan,
                        loan.total_paid + principal,
                        loan.total_interest_collected + interest,
                        last_payment_date=paid_on,
                    )
                    await self._save_loan(updated)

            log_action(logger, "info", "Monthly interest payment applied",
                       action="apply_monthly_interest_payment", loan_id=loan_id,
                       payment_id=payment.id, customer_id=loan.customer_id,
                       extra={"interest": interest.to_storage(), "principal": principal.to_storage()})
            self._mutated(create_payment_event(LedgerEvent.PAYMENT_APPLIED, payment,
                                               loan_status=updated.status.value))
            await self._audit("credit", customer_id=loan.customer_id, amount=total, loan_id=loan_id,
                              description="Interest payment received" if principal.is_zero()
                              else "Interest and principal payment received",
                              transaction_date=paid_on, reference_number=receipt_number)
            return LedgerUpdate(loan=updated, payment=payment)

        return await self._run("apply_monthly_interest_payment", operation, loan_id=loan_id)

    async def edit_payment(self, payment_id: int, amount: Optional[AmountInput] = None,
                           payment_date: Optional[date] = None,
                           payment_method: Union[PaymentMethod, str, None] = None,
                           notes: Optional[str] = None,
                           interest_amount: Optional[AmountInput] = None) -> Result[LedgerUpdate]:
        """Change a payment and move the loan totals by the difference"""

        async def operation():
            new_amount = parse_positive_amount(amount) if amount is not None else None
            new_interest = (parse_non_negative_amount(interest_amount, "Interest amount")
                            if interest_amount is not None else None)
            method = (_coerce_enum(PaymentMethod, payment_method, "payment method")
                      if payment_method is not None else None)

            original = await self._require_payment(payment_id)
            async with self._lock_for(original.loan_id):
                async with self.storage.atomic():
                    original = await self._require_payment(payment_id)
                    loan = await self._require_loan(original.loan_id)
                    if new_interest is not None and new_interest.is_positive() \
                            and loan.loan_type != LoanType.MONTHLY_INTEREST:
                        raise InvalidAmount("Interest payments only apply to monthly interest loans",
                                            details={"payment_id": payment_id})

                    edited = replace(
                        original,
                        amount=new_amount if new_amount is not None else original.amount,
                        interest_amount=new_interest if new_interest is not None else original.interest_amount,
                        payment_date=payment_date or original.payment_date,
                        payment_method=method or original.payment_method,
                        notes=notes if notes is not None else original.notes,
                    )
                    if await self.payments.update(edited) == 0:
                        raise PaymentNotFound(payment_id)

                    principal_delta = edited.principal_amount - original.principal_amount
                    interest_delta = edited.interest_amount - original.interest_amount
                    updated = self._recalculate(
                        loan,
                        loan.total_paid + principal_delta,
                        loan.total_interest_collected + interest_delta,
                        last_payment_date=await self._latest_payment_date(loan.id),
                    )
                    await self._save_loan(updated)

            delta = edited.amount - original.amount
            log_action(logger, "info", "Payment edited", action="edit_payment",
                       loan_id=loan.id, payment_id=payment_id, customer_id=edited.customer_id,
                       extra={"delta": delta.to_storage()})
            self._mutated(create_payment_event(LedgerEvent.PAYMENT_EDITED, edited,
                                               delta=delta.to_storage()))
            if delta.is_positive():
                await self._audit("credit", customer_id=edited.customer_id, amount=delta,
                                  loan_id=loan.id, description=f"Payment adjustment (+{delta.to_storage()})",
                                  transaction_date=self.today())
            elif delta.is_negative():
                await self._audit("debit", customer_id=edited.customer_id, amount=abs(delta),
                                  loan_id=loan.id, description=f"Payment adjustment (-{abs(delta).to_storage()})",
                                  transaction_date=self.today())
            return LedgerUpdate(loan=updated, payment=edited)

        return await self._run("edit_payment", operation, payment_id=payment_id)

    async def delete_payment(self, payment_id: int, permanent: bool = False) -> Result[LedgerUpdate]:
        """Reverse a payment; soft by default, permanent removes the row"""

        async def operation():
            payment = await self._require_payment(payment_id)
            async with self._lock_for(payment.loan_id):
                async with self.storage.atomic():
                    payment = await self._require_payment(payment_id)
                    loan = await self._require_loan(payment.loan_id)
                    if permanent:
                        removed = await self.payments.hard_delete(payment_id)
                    else:
                        removed = await self.payments.soft_delete(payment_id)
                    if removed == 0:
                        raise PaymentNotFound(payment_id)

                    updated = self._recalculate(
                        loan,
                        loan.total_paid - payment.principal_amount,
                        loan.total_interest_collected - payment.interest_amount,
                        last_payment_date=await self._latest_payment_date(loan.id),
                    )
                    await self._save_loan(updated)

            log_action(logger, "info", "Payment deleted", action="delete_payment",
                       loan_id=loan.id, payment_id=payment_id, customer_id=payment.customer_id,
                       extra={"permanent": permanent, "amount": payment.amount.to_storage()})
            self._mutated(create_payment_event(LedgerEvent.PAYMENT_DELETED, payment, permanent=permanent))
            await self._audit("debit", customer_id=payment.customer_id, amount=payment.amount,
                              loan_id=loan.id,
                              description="Payment deleted" if permanent else "Payment reversed",
                              transaction_date=self.today())
            return LedgerUpdate(loan=updated, payment=replace(payment, is_active=False))

        return await self._run("delete_payment", operation, payment_id=payment_id)

    # ------------------------------------------------------------------
    # Sweep

    async def run_overdue_sweep(self) -> Result[SweepReport]:
        """Re-evaluate every non-terminal loan and persist status changes only"""

        async def operation():
            report = SweepReport()
            today = self.today()
            for candidate in await self.loans.get_all_active():
                if not is_sweep_candidate(candidate):
                    continue
                async with self._lock_for(candidate.id):
                    loan = await self.loans.get_by_id(candidate.id)
                    if loan is None or not is_sweep_candidate(loan):
                        continue
                    report.checked += 1
                    status = evaluate_status(loan, as_of=today)
                    if status != loan.status:
                        await self._save_loan(replace(loan, status=status, updated_at=_utcnow()))
                        report.changed[loan.id] = status

            log_action(logger, "info", "Overdue sweep completed", action="run_overdue_sweep",
                       extra={"checked": report.checked, "changed": len(report.changed)})
            self._mutated(EventPayload(
                event_type=LedgerEvent.SWEEP_COMPLETED,
                entity_type="ledger",
                entity_id=None,
                data={"checked": report.checked,
                      "changed": {str(k): v.value for k, v in report.changed.items()}},
            ))
            return report

        return await self._run("run_overdue_sweep", operation)

    # ------------------------------------------------------------------
    # Customers

    async def add_customer(self, name: str, phone: Optional[str] = None) -> Result[Customer]:
        """Register a customer reference row"""

        async def operation():
            customer = await self.customers.insert(Customer(name=name, phone=phone))
            self.cache.invalidate_lists()
            return customer

        return await self._run("add_customer", operation)

    # ------------------------------------------------------------------
    # Reads

    async def get_loan(self, loan_id: int) -> Result[Loan]:
        return await self._run("get_loan", lambda: self._require_loan(loan_id), loan_id=loan_id)

    async def payment_history(self, loan_id: int) -> Result[List[Payment]]:
        """Active payments of a loan, newest first"""

        async def operation():
            await self._require_loan(loan_id)
            return await self.payments.get_by_loan(loan_id)

        return await self._run("payment_history", operation, loan_id=loan_id)

    async def loans_for_customer(self, customer_id: int) -> Result[List[Loan]]:
        return await self._run("loans_for_customer",
                               lambda: self.loans.get_by_customer(customer_id),
                               customer_id=customer_id)

    async def list_loans(self) -> Result[List[LoanWithCustomer]]:
        """All active loans with customer details"""
        return await self._read_cached("list_loans", list_key(), self.loans.get_with_customers)

    @property
    def filters(self):
        return self._search, self._status_filter

    def set_filters(self, search: str = "", status: Union[LoanStatus, str, None] = None) -> Result:
        """
        Replace both listing filters; cached listings are dropped when they change.

        Returns the filters now in effect. An unknown status leaves the
        current filters untouched.
        """
        try:
            new_status = _coerce_enum(LoanStatus, status, "loan status") if status else None
        except LedgerError as e:
            log_action(logger, "warning", f"set_filters failed: {e.message}", action="set_filters",
                       extra=e.details or None)
            return Result.from_error(e)
        if (search, new_status) != (self._search, self._status_filter):
            self._search = search
            self._status_filter = new_status
            self.cache.invalidate_lists()
        return Result.ok(self.filters)

    def update_filters(self, search: Optional[str] = None,
                       status: Union[LoanStatus, str, None] = None) -> Result:
        """Change the given listing filters, keeping the others"""
        return self.set_filters(
            self._search if search is None else search,
            self._status_filter if status is None else status,
        )

    def clear_filters(self) -> Result:
        return self.set_filters("", None)

    async def filtered_loans(self) -> Result[List[LoanWithCustomer]]:
        """Active loans matching the current search text and status filter"""
        search, status = self._search, self._status_filter
        key = list_key(search, status.value if status else None)

        async def compute():
            listing = await self.loans.get_with_customers()
            needle = search.strip().lower()
            matches = []
            for row in listing:
                if status is not None and row.loan.status != status:
                    continue
                if needle:
                    haystack = [row.customer_name, row.customer_phone, row.loan.book_no]
                    if not any(needle in (value or "").lower() for value in haystack):
                        continue
                matches.append(row)
            return matches

        return await self._read_cached("filtered_loans", key, compute)

    async def dashboard_stats(self) -> Result[DashboardStats]:
        """Totals for the dashboard, served from the cache while fresh"""
        return await self._read_cached("dashboard_stats", DASHBOARD_KEY, self._compute_dashboard)

    async def _compute_dashboard(self) -> DashboardStats:
        loans = await self.loans.get_all_active()
        total_given = Money.zero()
        outstanding = Money.zero()
        for loan in loans:
            total_given = total_given + loan.principal
            if loan.status in OUTSTANDING_STATUSES:
                outstanding = outstanding + loan.remaining_amount

        return DashboardStats(
            total_given=total_given,
            total_received=await self.payments.sum_amount(),
            outstanding=outstanding,
            today_collection=await self.payments.sum_amount({'payment_date': self.today().isoformat()}),
            active_loans=sum(1 for loan in loans if loan.status == LoanStatus.ACTIVE),
            overdue_loans=sum(1 for loan in loans if loan.status == LoanStatus.OVERDUE),
        )
