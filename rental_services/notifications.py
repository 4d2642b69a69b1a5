"""
Lifecycle notifications (``rental_services.notifications``).

Responsibility:
    The outbound hook the lifecycle service calls after each committed
    transition, and after a critical error.  Delivery (mail, chat, queue)
    belongs to whoever implements ``NotificationHook``; this module ships a
    logging implementation and an in-memory recorder.

Invariants enforced:
    - Fire and forget: ``dispatch_event`` / ``dispatch_admin_alert`` log a
      failing hook and return.  A hook failure never fails or retries the
      operation that triggered it.
    - Events are emitted only after the transaction committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from rental_kernel.domain.order import RentalOrder
from rental_kernel.exceptions import RentalError
from rental_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class LifecycleEventType(str, Enum):
    ORDER_CREATED = "order_created"
    APPROVED = "approved"
    STARTED = "started"
    RETURNED = "returned"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    EXTENDED = "extended"
    LOST = "lost"


@dataclass(frozen=True)
class LifecycleEvent:
    """One committed lifecycle transition."""

    event_type: LifecycleEventType
    order_id: UUID
    order_no: str
    status: str
    occurred_at: datetime
    fee_deltas: dict[str, Decimal] = field(default_factory=dict)
    total_amount: Decimal | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_order(
        cls,
        event_type: LifecycleEventType,
        order: RentalOrder,
        occurred_at: datetime,
        fee_deltas: dict[str, Decimal] | None = None,
        **payload: Any,
    ) -> LifecycleEvent:
        return cls(
            event_type=event_type,
            order_id=order.id,
            order_no=order.order_no,
            status=order.status.value,
            occurred_at=occurred_at,
            fee_deltas={k: v for k, v in (fee_deltas or {}).items() if v},
            total_amount=order.total_amount,
            payload=payload,
        )


@runtime_checkable
class NotificationHook(Protocol):
    def emit(self, event: LifecycleEvent) -> None: ...

    def alert_admin(self, error: RentalError) -> None: ...


class LoggingNotificationHook:
    """Default hook: writes events and alerts to the structured log."""

    def __init__(self, admin_email: str | None = None):
        self.admin_email = admin_email

    def emit(self, event: LifecycleEvent) -> None:
        logger.info(
            "rental_lifecycle_event",
            extra={
                "event_type": event.event_type.value,
                "order_id": str(event.order_id),
                "order_no": event.order_no,
                "status": event.status,
                "fee_deltas": event.fee_deltas,
                "total_amount": event.total_amount,
            },
        )

    def alert_admin(self, error: RentalError) -> None:
        logger.critical(
            "rental_admin_alert",
            extra={
                "admin_email": self.admin_email,
                "error_code": error.code,
                "error_category": error.category.value,
                "error_message": str(error),
                "error_payload": dict(error.payload),
            },
        )


class RecordingNotificationHook:
    """Keeps every event and alert in memory."""

    def __init__(self) -> None:
        self.events: list[LifecycleEvent] = []
        self.alerts: list[RentalError] = []

    def emit(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def alert_admin(self, error: RentalError) -> None:
        self.alerts.append(error)

    def event_types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


def dispatch_event(hook: NotificationHook, event: LifecycleEvent) -> None:
    try:
        hook.emit(event)
    except Exception:
        logger.exception(
            "notification_hook_failed",
            extra={"event_type": event.event_type.value, "order_no": event.order_no},
        )


def dispatch_admin_alert(hook: NotificationHook, error: RentalError) -> None:
    try:
        hook.alert_admin(error)
    except Exception:
        logger.exception("admin_alert_failed", extra={"error_code": error.code})
