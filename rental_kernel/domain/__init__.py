"""
Pure domain layer.

Value objects and rules with NO dependencies on the ORM, the database, or
the system clock.  Everything here is immutable and deterministic.
"""

from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.domain.inventory_pool import PoolState, SourcePool, TargetPool
from rental_kernel.domain.order import OrderFees, RentalOrder, compute_total_amount
from rental_kernel.domain.order_status import (
    COMMITMENT_STATUSES,
    RENTAL_ORDER_WORKFLOW,
    TERMINAL_STATUSES,
    OrderAction,
    OrderStatus,
)
from rental_kernel.domain.period import RentalPeriod, periods_overlap, rental_days
from rental_kernel.domain.product import RateCard, RentalProduct
from rental_kernel.domain.validation import CustomerProfile, ValidationGate, ValidationRules

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "PoolState",
    "SourcePool",
    "TargetPool",
    "OrderFees",
    "RentalOrder",
    "compute_total_amount",
    "COMMITMENT_STATUSES",
    "RENTAL_ORDER_WORKFLOW",
    "TERMINAL_STATUSES",
    "OrderAction",
    "OrderStatus",
    "RentalPeriod",
    "periods_overlap",
    "rental_days",
    "RateCard",
    "RentalProduct",
    "CustomerProfile",
    "ValidationGate",
    "ValidationRules",
]
