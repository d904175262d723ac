"""
Tests for the event dispatcher and event payload builders
"""

import pytest
from datetime import date
from decimal import Decimal

from loan_ledger.currency import Money
from loan_ledger.events import (
    EventDispatcher, EventPayload, LedgerEvent, create_loan_event, create_payment_event
)
from loan_ledger.models import Loan, LoanType, Payment


@pytest.fixture
def dispatcher():
    return EventDispatcher()


def make_event(event_type=LedgerEvent.LOAN_CREATED):
    return EventPayload(event_type=event_type, entity_type="loan", entity_id=1, data={})


class TestEventDispatcher:
    """Test publish/subscribe"""

    def test_subscribe_and_publish(self, dispatcher):
        received = []
        dispatcher.subscribe(LedgerEvent.LOAN_CREATED, received.append)

        dispatcher.publish(make_event())
        dispatcher.publish(make_event(LedgerEvent.PAYMENT_APPLIED))

        assert len(received) == 1
        assert received[0].event_type == LedgerEvent.LOAN_CREATED

    def test_global_handlers_see_every_event(self, dispatcher):
        received = []
        dispatcher.subscribe_all(received.append)

        dispatcher.publish(make_event())
        dispatcher.publish(make_event(LedgerEvent.DATA_REFRESHED))

        assert [e.event_type for e in received] == [LedgerEvent.LOAN_CREATED, LedgerEvent.DATA_REFRESHED]

    def test_unsubscribe(self, dispatcher):
        received = []
        dispatcher.subscribe(LedgerEvent.LOAN_CREATED, received.append)
        dispatcher.unsubscribe(LedgerEvent.LOAN_CREATED, received.append)
        dispatcher.publish(make_event())
        assert received == []

        # Unknown handler only logs
        dispatcher.unsubscribe(LedgerEvent.LOAN_CREATED, received.append)

    def test_failing_handler_does_not_stop_others(self, dispatcher):
        received = []

        def broken(event):
            raise RuntimeError("handler failed")

        dispatcher.subscribe(LedgerEvent.LOAN_CREATED, broken)
        dispatcher.subscribe(LedgerEvent.LOAN_CREATED, received.append)

        dispatcher.publish(make_event())
        assert len(received) == 1

    def test_handler_count_and_clear(self, dispatcher):
        dispatcher.subscribe(LedgerEvent.LOAN_CREATED, lambda e: None)
        dispatcher.subscribe(LedgerEvent.LOAN_DELETED, lambda e: None)
        dispatcher.subscribe_all(lambda e: None)

        assert dispatcher.get_handler_count(LedgerEvent.LOAN_CREATED) == 1
        assert dispatcher.get_handler_count() == 3

        dispatcher.clear()
        assert dispatcher.get_handler_count() == 0


class TestEventPayloads:

    def test_loan_event(self):
        loan = Loan(id=3, customer_id=9, principal=Money(Decimal("1000")),
                    loan_type=LoanType.WEEKLY, loan_date=date(2024, 1, 1),
                    total_paid=Money(Decimal("250")))
        event = create_loan_event(LedgerEvent.LOAN_CREATED, loan, source="test")

        assert event.entity_type == "loan"
        assert event.entity_id == 3
        assert event.data["remaining_amount"] == "750"
        assert event.data["status"] == "active"
        assert event.data["source"] == "test"

        serialized = event.to_dict()
        assert serialized["event_type"] == "loan.created"
        assert serialized["event_id"]

    def test_payment_event(self):
        payment = Payment(id=5, loan_id=3, customer_id=9, amount=Money(Decimal("120")),
                          interest_amount=Money(Decimal("20")), payment_date=date(2024, 2, 1))
        event = create_payment_event(LedgerEvent.PAYMENT_APPLIED, payment)

        assert event.entity_id == 5
        assert event.data["amount"] == "120"
        assert event.data["interest_amount"] == "20"
        assert event.data["payment_date"] == "2024-02-01"
