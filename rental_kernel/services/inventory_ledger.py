"""
InventoryLedger -- row-locked, versioned per-product inventory counters.

Responsibility:
    Persist ``PoolState`` transitions for one product at a time.  Every
    mutating call locks the product's pool row, applies a pure transition
    from ``rental_kernel.domain.inventory_pool``, writes the counters back
    and flushes.

Architecture position:
    Kernel > Services.  Flush-only: the caller owns the transaction, so a
    conflict check, a reservation and an order insert commit or roll back
    together.

Invariants enforced:
    - Serialization per product: ``SELECT ... FOR UPDATE`` on the pool row,
      held until the caller's transaction ends.
    - Optimistic guard: the row's ``version`` column is compared on every
      UPDATE.  A stale write surfaces as
      ``RentalError(CONCURRENT_MODIFICATION)``, which is retryable.
    - Counters are never negative; a negative row read back from storage is
      a ``STOCK_CALCULATION`` error and needs a human.

Failure modes:
    - ``POOL_NOT_FOUND`` when the product has no pool.
    - ``INSUFFICIENT_STOCK`` from ``reserve``; nothing is written.
"""

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from rental_kernel.domain.clock import Clock
from rental_kernel.domain.inventory_pool import PoolState, SourcePool
from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.inventory_pool import InventoryPoolModel
from rental_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")


class InventoryLedger(BaseService[InventoryPoolModel]):
    """
    Atomic pool transitions for rental inventory.

    Every mutating method returns the post-operation ``PoolState``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Pool rows
    # ------------------------------------------------------------------

    def create_pool(
        self,
        product_id: UUID,
        actor_id: UUID,
        initial_stock: int = 0,
        alert_threshold: int = 0,
        reorder_point: int | None = None,
        auto_reorder_enabled: bool = False,
    ) -> PoolState:
        state = PoolState(
            available=initial_stock,
            alert_threshold=alert_threshold,
            reorder_point=reorder_point,
            auto_reorder_enabled=auto_reorder_enabled,
        )
        pool = InventoryPoolModel(
            product_id=product_id,
            alert_threshold=alert_threshold,
            reorder_point=reorder_point,
            auto_reorder_enabled=auto_reorder_enabled,
        )
        pool.apply_state(state)
        pool.stamp_created(self.clock.now(), actor_id)
        self.session.add(pool)
        self.session.flush()
        logger.info(
            "inventory_pool_created",
            extra={"product_id": str(product_id), "initial_stock": initial_stock},
        )
        return state

    def get_pool(self, product_id: UUID) -> PoolState:
        """Unlocked read of the current counters."""
        return self._to_state(self._load(product_id, lock=False))

    def lock_pool(self, product_id: UUID) -> PoolState:
        """
        Take the product's row lock for the rest of the transaction.

        Callers that must check-then-mutate (period conflict resolution
        followed by ``reserve``) call this first.
        """
        return self._to_state(self._load(product_id, lock=True))

    def has_pool(self, product_id: UUID) -> bool:
        return self.session.execute(
            select(InventoryPoolModel.id).where(InventoryPoolModel.product_id == product_id)
        ).first() is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reserve(
        self,
        product_id: UUID,
        qty: int,
        actor_id: UUID | None = None,
        window_available: int | None = None,
    ) -> PoolState:
        return self._apply(
            product_id, "reserve", qty, actor_id,
            lambda s: s.reserve(qty, window_available=window_available),
        )

    def cancel_reservation(self, product_id: UUID, qty: int, actor_id: UUID | None = None) -> PoolState:
        return self._apply(product_id, "cancel_reservation", qty, actor_id,
                           lambda s: s.cancel_reservation(qty))

    def activate_rental(self, product_id: UUID, qty: int, actor_id: UUID | None = None) -> PoolState:
        return self._apply(product_id, "activate_rental", qty, actor_id,
                           lambda s: s.activate_rental(qty))

    def return_from_rental(self, product_id: UUID, qty: int, actor_id: UUID | None = None) -> PoolState:
        return self._apply(product_id, "return_from_rental", qty, actor_id,
                           lambda s: s.return_from_rental(qty))

    def move_to_maintenance(
        self,
        product_id: UUID,
        qty: int,
        source: SourcePool | str = SourcePool.AVAILABLE,
        actor_id: UUID | None = None,
    ) -> PoolState:
        return self._apply(product_id, "move_to_maintenance", qty, actor_id,
                           lambda s: s.move_to_maintenance(qty, source), source=source)

    def complete_maintenance(self, product_id: UUID, qty: int, actor_id: UUID | None = None) -> PoolState:
        return self._apply(product_id, "complete_maintenance", qty, actor_id,
                           lambda s: s.complete_maintenance(qty))

    def mark_as_damaged(
        self,
        product_id: UUID,
        qty: int,
        source: SourcePool | str = SourcePool.AVAILABLE,
        actor_id: UUID | None = None,
    ) -> PoolState:
        return self._apply(product_id, "mark_as_damaged", qty, actor_id,
                           lambda s: s.mark_as_damaged(qty, source), source=source)

    def mark_as_lost(
        self,
        product_id: UUID,
        qty: int,
        source: SourcePool | str = SourcePool.AVAILABLE,
        actor_id: UUID | None = None,
    ) -> PoolState:
        return self._apply(product_id, "mark_as_lost", qty, actor_id,
                           lambda s: s.mark_as_lost(qty, source), source=source)

    def add_stock(self, product_id: UUID, qty: int, actor_id: UUID | None = None) -> PoolState:
        return self._apply(product_id, "add_stock", qty, actor_id, lambda s: s.add_stock(qty))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, product_id: UUID, lock: bool) -> InventoryPoolModel:
        stmt = select(InventoryPoolModel).where(InventoryPoolModel.product_id == product_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        pool = self.session.execute(stmt).scalar_one_or_none()
        if pool is None:
            raise RentalError(
                ErrorKind.POOL_NOT_FOUND,
                f"No inventory pool for product {product_id}",
                product_id=product_id,
            )
        return pool

    def _to_state(self, pool: InventoryPoolModel) -> PoolState:
        try:
            return pool.to_state()
        except RentalError as exc:
            logger.error(
                "inventory_stock_calculation_error",
                extra={"product_id": str(pool.product_id), **exc.payload},
            )
            raise

    def _apply(
        self,
        product_id: UUID,
        operation: str,
        qty: int,
        actor_id: UUID | None,
        transition: Callable[[PoolState], PoolState],
        source: SourcePool | str | None = None,
    ) -> PoolState:
        pool = self._load(product_id, lock=True)
        before = self._to_state(pool)
        after = transition(before)

        pool.apply_state(after)
        pool.touch(self.clock.now(), actor_id)
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "inventory_concurrent_modification",
                extra={"product_id": str(product_id), "operation": operation},
            )
            raise RentalError(
                ErrorKind.CONCURRENT_MODIFICATION,
                f"Inventory for product {product_id} was modified concurrently",
                product_id=product_id,
                operation=operation,
            ) from exc

        logger.info(
            "inventory_pool_updated",
            extra={
                "product_id": str(product_id),
                "operation": operation,
                "quantity": qty,
                "source": str(getattr(source, "value", source)) if source else None,
                "before": before.stock_status(),
                "after": after.stock_status(),
            },
        )
        self._check_alerts(product_id, after)
        return after

    def _check_alerts(self, product_id: UUID, state: PoolState) -> None:
        if state.is_low_stock:
            logger.warning(
                "inventory_low_stock",
                extra={
                    "product_id": str(product_id),
                    "actual_available": state.actual_available,
                    "alert_threshold": state.alert_threshold,
                },
            )
        if state.needs_reorder:
            logger.warning(
                "inventory_reorder_needed",
                extra={
                    "product_id": str(product_id),
                    "actual_available": state.actual_available,
                    "reorder_point": state.reorder_point,
                },
            )
