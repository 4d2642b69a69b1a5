"""
Inventory pool state (``rental_kernel.domain.inventory_pool``).

Responsibility
--------------
Pure, immutable model of one product's unit counters and every transition
between them.  The persistence-side ``InventoryLedger`` service loads a row,
applies one of these transitions, and writes the result back under a row
lock.

Counters
--------
``available``    in-service stock; ``reserved`` and ``rented`` are
                 sub-allocations of it
``reserved``     committed to pending/reserved orders
``rented``       physically out with customers
``maintenance``  out of service for upkeep
``damaged``      written off as damaged
``lost``         written off as lost

Invariants
----------
- Every counter is a non-negative int.
- ``actual_available = max(0, available - reserved - rented)``.
- ``total_quantity = available + maintenance + damaged + lost`` (the
  physical unit count) changes only through ``add_stock``.  Damage, loss
  and maintenance relabel units; they never remove them.
- Over-requests on counter moves clamp to the source pool.  ``reserve`` is
  the only operation that refuses a request.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any

from rental_kernel.db.types import round_money
from rental_kernel.exceptions import ErrorKind, RentalError


class SourcePool(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    RENTED = "rented"
    MAINTENANCE = "maintenance"


class TargetPool(str, Enum):
    MAINTENANCE = "maintenance"
    DAMAGED = "damaged"
    LOST = "lost"


def _check_quantity(qty: int) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise RentalError(
            ErrorKind.INVALID_QUANTITY,
            f"Quantity must be a positive integer, got {qty!r}",
            field="quantity",
            value=qty,
        )
    return qty


def _parse_source(source: SourcePool | str) -> SourcePool:
    try:
        return SourcePool(source)
    except ValueError:
        raise RentalError(
            ErrorKind.INVALID_SOURCE_POOL,
            f"Unknown source pool '{source}'",
            source=str(source),
            allowed=[p.value for p in SourcePool],
        ) from None


@dataclass(frozen=True)
class PoolState:
    """Immutable snapshot of one product's inventory counters."""

    available: int = 0
    reserved: int = 0
    rented: int = 0
    maintenance: int = 0
    damaged: int = 0
    lost: int = 0
    alert_threshold: int = 0
    reorder_point: int | None = None
    auto_reorder_enabled: bool = False

    def __post_init__(self) -> None:
        negative = {
            name: getattr(self, name)
            for name in ("available", "reserved", "rented", "maintenance", "damaged", "lost")
            if getattr(self, name) < 0
        }
        if negative:
            raise RentalError(
                ErrorKind.STOCK_CALCULATION,
                f"Inventory counters must be non-negative: {negative}",
                counters=negative,
            )

    # ------------------------------------------------------------------
    # Derived reads
    # ------------------------------------------------------------------

    @property
    def actual_available(self) -> int:
        return max(0, self.available - self.reserved - self.rented)

    @property
    def total_quantity(self) -> int:
        return self.available + self.maintenance + self.damaged + self.lost

    @property
    def utilization_rate(self) -> Decimal:
        """Percent of in-service stock committed, rounded to 2 places."""
        if self.available == 0:
            return Decimal("0")
        committed = Decimal(self.reserved + self.rented)
        return round_money(committed * Decimal(100) / Decimal(self.available))

    @property
    def is_low_stock(self) -> bool:
        return self.actual_available <= self.alert_threshold

    @property
    def needs_reorder(self) -> bool:
        return (
            self.auto_reorder_enabled
            and self.reorder_point is not None
            and self.actual_available <= self.reorder_point
        )

    @property
    def is_out_of_stock(self) -> bool:
        return self.actual_available <= 0

    def stock_status(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "reserved": self.reserved,
            "rented": self.rented,
            "maintenance": self.maintenance,
            "damaged": self.damaged,
            "lost": self.lost,
            "actual_available": self.actual_available,
            "total_quantity": self.total_quantity,
            "utilization_rate": self.utilization_rate,
            "is_low_stock": self.is_low_stock,
            "needs_reorder": self.needs_reorder,
            "is_out_of_stock": self.is_out_of_stock,
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reserve(self, qty: int, window_available: int | None = None) -> PoolState:
        """
        Commit ``qty`` units.

        Without ``window_available`` the check is against
        ``actual_available``.  A caller that has already resolved the
        date-window capacity under the pool lock passes it in instead, so
        that orders for non-overlapping windows can share the same units.

        Raises:
            RentalError(INSUFFICIENT_STOCK): no partial reservation is made.
        """
        _check_quantity(qty)
        offerable = self.actual_available if window_available is None else window_available
        if offerable < qty:
            raise RentalError(
                ErrorKind.INSUFFICIENT_STOCK,
                f"Requested {qty} but only {offerable} available",
                requested=qty,
                available=offerable,
            )
        return replace(self, reserved=self.reserved + qty)

    def cancel_reservation(self, qty: int) -> PoolState:
        _check_quantity(qty)
        return replace(self, reserved=self.reserved - min(qty, self.reserved))

    def activate_rental(self, qty: int) -> PoolState:
        _check_quantity(qty)
        moved = min(qty, self.reserved)
        return replace(self, reserved=self.reserved - moved, rented=self.rented + moved)

    def return_from_rental(self, qty: int) -> PoolState:
        _check_quantity(qty)
        return replace(self, rented=self.rented - min(qty, self.rented))

    def move_to_maintenance(self, qty: int, source: SourcePool | str = SourcePool.AVAILABLE) -> PoolState:
        return self._relabel(qty, source, TargetPool.MAINTENANCE)

    def mark_as_damaged(self, qty: int, source: SourcePool | str = SourcePool.AVAILABLE) -> PoolState:
        return self._relabel(qty, source, TargetPool.DAMAGED)

    def mark_as_lost(self, qty: int, source: SourcePool | str = SourcePool.AVAILABLE) -> PoolState:
        return self._relabel(qty, source, TargetPool.LOST)

    def complete_maintenance(self, qty: int) -> PoolState:
        """Put ``min(qty, maintenance)`` units back into service."""
        _check_quantity(qty)
        moved = min(qty, self.maintenance)
        return replace(
            self,
            maintenance=self.maintenance - moved,
            available=self.available + moved,
        )

    def add_stock(self, qty: int) -> PoolState:
        _check_quantity(qty)
        return replace(self, available=self.available + qty)

    def _relabel(self, qty: int, source: SourcePool | str, target: TargetPool) -> PoolState:
        _check_quantity(qty)
        src = _parse_source(source)
        counters = {
            "available": self.available,
            "reserved": self.reserved,
            "rented": self.rented,
            "maintenance": self.maintenance,
            "damaged": self.damaged,
            "lost": self.lost,
        }
        if src is SourcePool.AVAILABLE:
            # Only free units; committed ones leave via their own source
            moved = min(qty, self.actual_available)
        elif src is SourcePool.MAINTENANCE:
            moved = min(qty, self.maintenance)
        else:
            moved = min(qty, counters[src.value], self.available)

        if src is SourcePool.MAINTENANCE:
            counters["maintenance"] -= moved
        else:
            # Leaving service: drop the sub-allocation and the in-service count
            if src is not SourcePool.AVAILABLE:
                counters[src.value] -= moved
            counters["available"] -= moved
        counters[target.value] += moved
        return replace(self, **counters)
