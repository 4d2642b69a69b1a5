"""
PeriodConflictResolver -- can N units of a product be had for a date window?

Responsibility:
    Combine the product's pool counters with the quantities already held by
    overlapping orders to decide whether a request fits its window, and to
    detect overcommit after the fact.

Window capacity:
    ``available`` is the in-service unit count.  Orders that overlap the
    requested window hold part of it; orders for other windows do not, so
    they can share the same physical units.  Hence

        available_for_window = max(0, available - committed_overlap)

    where ``committed_overlap`` sums the quantity of every other order that
    holds units during the window (see ``OrderSelector.committed_quantity``).

Invariants enforced:
    - Call ``lock=True`` (the default) when the result gates a reservation:
      the pool row lock is taken before counting, so no concurrent
      reservation for the same product can slip in between the check and
      the write.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from rental_kernel.domain.clock import Clock
from rental_kernel.domain.period import RentalPeriod
from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.logging_config import get_logger
from rental_kernel.selectors.order_selector import OrderSelector
from rental_kernel.services.base import BaseService
from rental_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.period_conflict")


@dataclass(frozen=True)
class WindowAvailability:
    product_id: UUID
    period: RentalPeriod
    in_service: int
    committed: int

    @property
    def available(self) -> int:
        return max(0, self.in_service - self.committed)

    def can_fulfil(self, quantity: int) -> bool:
        return self.available >= quantity


class PeriodConflictResolver(BaseService):
    """Availability of a product over a date window."""

    def __init__(
        self,
        session: Session,
        ledger: InventoryLedger | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or InventoryLedger(session, self.clock)
        self.orders = OrderSelector(session)

    def availability(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        exclude_order_id: UUID | None = None,
        lock: bool = True,
    ) -> WindowAvailability:
        pool = self.ledger.lock_pool(product_id) if lock else self.ledger.get_pool(product_id)
        committed = self.orders.committed_quantity(
            product_id, start_date, end_date, exclude_order_id=exclude_order_id,
        )
        return WindowAvailability(
            product_id=product_id,
            period=RentalPeriod(start_date, end_date),
            in_service=pool.available,
            committed=committed,
        )

    def ensure_available(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        quantity: int,
        exclude_order_id: UUID | None = None,
    ) -> WindowAvailability:
        """
        Lock the pool and check the window.

        Raises:
            RentalError(PERIOD_CONFLICT): naming product, window, requested
                and available quantity.  Nothing is mutated.
        """
        window = self.availability(
            product_id, start_date, end_date, exclude_order_id=exclude_order_id,
        )
        if not window.can_fulfil(quantity):
            logger.info(
                "period_conflict",
                extra={
                    "product_id": str(product_id),
                    "start_date": start_date,
                    "end_date": end_date,
                    "requested": quantity,
                    "window_available": window.available,
                    "committed": window.committed,
                },
            )
            raise RentalError(
                ErrorKind.PERIOD_CONFLICT,
                f"Product {product_id} has only {window.available} unit(s) free "
                f"for {window.period}, requested {quantity}",
                product_id=product_id,
                start_date=start_date,
                end_date=end_date,
                requested=quantity,
                available=window.available,
            )
        return window

    def conflicting_orders(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        exclude_order_id: UUID | None = None,
    ):
        return self.orders.find_overlapping(
            product_id, start_date, end_date, exclude_order_id=exclude_order_id,
        )

    def verify_no_overcommit(self, product_id: UUID, start_date: date, end_date: date) -> None:
        """
        Assert that orders holding units during the window fit in service stock.

        Runs after a reservation inside the same transaction.  A violation
        means the locking discipline was bypassed somewhere.

        Raises:
            RentalError(OVERCOMMIT): critical, requires admin notification.
        """
        window = self.availability(product_id, start_date, end_date, lock=False)
        if window.committed > window.in_service:
            logger.error(
                "inventory_overcommit_detected",
                extra={
                    "product_id": str(product_id),
                    "start_date": start_date,
                    "end_date": end_date,
                    "committed": window.committed,
                    "in_service": window.in_service,
                },
            )
            raise RentalError(
                ErrorKind.OVERCOMMIT,
                f"Product {product_id} is overcommitted for {window.period}: "
                f"{window.committed} committed, {window.in_service} in service",
                product_id=product_id,
                start_date=start_date,
                end_date=end_date,
                committed=window.committed,
                in_service=window.in_service,
            )
