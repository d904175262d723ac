"""
Event System Module

Publish/subscribe dispatcher the ledger engine uses to tell collaborators
(presentation, notifications, backups) that ledger data changed.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
from threading import RLock

from .logging_config import get_logger


class LedgerEvent(Enum):
    """Events emitted by the ledger engine"""

    # Loan events
    LOAN_CREATED = "loan.created"
    LOAN_DELETED = "loan.deleted"
    LOAN_STATUS_CHANGED = "loan.status_changed"

    # Payment events
    PAYMENT_APPLIED = "payment.applied"
    PAYMENT_EDITED = "payment.edited"
    PAYMENT_DELETED = "payment.deleted"

    # Batch and refresh events
    SWEEP_COMPLETED = "sweep.completed"
    DATA_REFRESHED = "data.refreshed"


@dataclass
class EventPayload:
    """Payload for ledger events"""
    event_type: LedgerEvent
    entity_type: str
    entity_id: Optional[int]
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__name__', repr(handler))


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[LedgerEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()  # Thread-safe access
        self.logger = get_logger("events")

    def subscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
                self.logger.debug(f"Unsubscribed handler {_handler_name(handler)} from {event_type.value}")
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Log but don't break the main operation
                self.logger.error(
                    f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}",
                    exc_info=True
                )

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[LedgerEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


def create_loan_event(event_type: LedgerEvent, loan, **extra) -> EventPayload:
    """Create a loan-related event"""
    data = {
        "customer_id": loan.customer_id,
        "loan_type": loan.loan_type.value,
        "principal": loan.principal.to_storage(),
        "total_paid": loan.total_paid.to_storage(),
        "remaining_amount": loan.remaining_amount.to_storage(),
        "status": loan.status.value,
    }
    data.update(extra)
    return EventPayload(event_type=event_type, entity_type="loan", entity_id=loan.id, data=data)


def create_payment_event(event_type: LedgerEvent, payment, **extra) -> EventPayload:
    """Create a payment-related event"""
    data = {
        "loan_id": payment.loan_id,
        "customer_id": payment.customer_id,
        "amount": payment.amount.to_storage(),
        "interest_amount": payment.interest_amount.to_storage(),
        "payment_date": payment.payment_date.isoformat(),
    }
    data.update(extra)
    return EventPayload(event_type=event_type, entity_type="payment", entity_id=payment.id, data=data)
