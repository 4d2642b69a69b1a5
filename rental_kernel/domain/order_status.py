"""
Rental order statuses and the order lifecycle workflow.

pending -> reserved -> active -> {returned | overdue | damaged}
pending | reserved -> cancelled

``overdue`` has two meanings that share one status value:
an active order swept past its end date while still out (no actual return
date yet), and an order whose return came in late (actual return date
set).  Only the first can still be returned.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from rental_kernel.domain.workflow import Guard, GuardExecutor, Transition, Workflow
from rental_kernel.logging_config import get_logger

logger = get_logger("domain.order_status")


class OrderStatus(str, Enum):
    PENDING = "pending"
    RESERVED = "reserved"
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    DAMAGED = "damaged"
    LOST = "lost"


# Statuses whose orders hold units for their rental window
COMMITMENT_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.RESERVED,
    OrderStatus.ACTIVE,
)

TERMINAL_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.RETURNED,
    OrderStatus.CANCELLED,
    OrderStatus.DAMAGED,
    OrderStatus.LOST,
)


class OrderAction(str, Enum):
    APPROVE = "approve"
    START = "start"
    RETURN = "return"
    CANCEL = "cancel"
    EXTEND = "extend"
    MARK_OVERDUE = "mark_overdue"
    REPORT_LOST = "report_lost"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

RETURNED_LATE = Guard(
    name="returned_late",
    description="Return date is after the rental end date",
)

DAMAGE_REPORTED = Guard(
    name="damage_reported",
    description="Return condition carries a positive damage fee",
)

PAST_END_DATE = Guard(
    name="past_end_date",
    description="Business date is after the rental end date and nothing came back",
)


def _returned_late(context: dict[str, Any]) -> bool:
    return (context.get("days_late") or 0) > 0


def _damage_reported(context: dict[str, Any]) -> bool:
    return (context.get("damage_fee") or Decimal("0")) > 0


def _past_end_date(context: dict[str, Any]) -> bool:
    as_of = context.get("as_of")
    end_date = context.get("end_date")
    if as_of is None or end_date is None:
        return False
    return as_of > end_date and context.get("actual_return_date") is None


def order_guard_executor() -> GuardExecutor:
    """GuardExecutor with the rental order guards registered."""
    executor = GuardExecutor()
    executor.register(RETURNED_LATE.name, _returned_late)
    executor.register(DAMAGE_REPORTED.name, _damage_reported)
    executor.register(PAST_END_DATE.name, _past_end_date)
    return executor


def _t(src: OrderStatus, dst: OrderStatus, action: OrderAction, guard=None, moves=False):
    return Transition(
        from_state=src.value,
        to_state=dst.value,
        action=action.value,
        guard=guard,
        moves_inventory=moves,
    )


RENTAL_ORDER_WORKFLOW = Workflow(
    name="rental_order",
    description="Rental order lifecycle",
    initial_state=OrderStatus.PENDING.value,
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        _t(OrderStatus.PENDING, OrderStatus.RESERVED, OrderAction.APPROVE),
        _t(OrderStatus.RESERVED, OrderStatus.ACTIVE, OrderAction.START, moves=True),
        _t(OrderStatus.ACTIVE, OrderStatus.RETURNED, OrderAction.RETURN, moves=True),
        # guarded transitions are tried first; damage wins over a late return
        _t(OrderStatus.ACTIVE, OrderStatus.DAMAGED, OrderAction.RETURN, DAMAGE_REPORTED, moves=True),
        _t(OrderStatus.ACTIVE, OrderStatus.OVERDUE, OrderAction.RETURN, RETURNED_LATE, moves=True),
        _t(OrderStatus.OVERDUE, OrderStatus.RETURNED, OrderAction.RETURN, moves=True),
        _t(OrderStatus.OVERDUE, OrderStatus.DAMAGED, OrderAction.RETURN, DAMAGE_REPORTED, moves=True),
        _t(OrderStatus.PENDING, OrderStatus.CANCELLED, OrderAction.CANCEL, moves=True),
        _t(OrderStatus.RESERVED, OrderStatus.CANCELLED, OrderAction.CANCEL, moves=True),
        _t(OrderStatus.ACTIVE, OrderStatus.ACTIVE, OrderAction.EXTEND),
        _t(OrderStatus.ACTIVE, OrderStatus.OVERDUE, OrderAction.MARK_OVERDUE, PAST_END_DATE),
        _t(OrderStatus.ACTIVE, OrderStatus.LOST, OrderAction.REPORT_LOST, moves=True),
        _t(OrderStatus.OVERDUE, OrderStatus.LOST, OrderAction.REPORT_LOST, moves=True),
    ),
    terminal_states=tuple(s.value for s in TERMINAL_STATUSES),
)

logger.debug(
    "rental_order_workflow_defined",
    extra={
        "states": list(RENTAL_ORDER_WORKFLOW.states),
        "transitions": len(RENTAL_ORDER_WORKFLOW.transitions),
    },
)
