"""
Product catalog service (``rental_services.catalog``).

Registers rentable products and manages their stock outside the order
lifecycle: receiving units, sending units to maintenance and back, and
writing off damaged or lost units.  Each public method commits on success
and rolls back on failure, like ``OrderLifecycleService``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_config.schema import RentalSettings
from rental_kernel.domain.clock import Clock
from rental_kernel.domain.inventory_pool import PoolState, SourcePool, TargetPool
from rental_kernel.domain.product import RentalProduct
from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.models.product import RentalProductModel
from rental_kernel.services.base import BaseService
from rental_kernel.services.inventory_ledger import InventoryLedger
from rental_services.notifications import (
    LoggingNotificationHook,
    NotificationHook,
    dispatch_admin_alert,
)

logger = get_logger("services.catalog")

T = TypeVar("T")


class ProductCatalogService(BaseService[RentalProductModel]):

    def __init__(
        self,
        session: Session,
        settings: RentalSettings | None = None,
        clock: Clock | None = None,
        hook: NotificationHook | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or RentalSettings()
        self.hook: NotificationHook = hook or LoggingNotificationHook(self.settings.admin_email)
        self.ledger = InventoryLedger(session, self.clock)

    def register_product(
        self,
        product: RentalProduct,
        actor_id: UUID,
        initial_stock: int | None = None,
        alert_threshold: int | None = None,
        reorder_point: int | None = None,
    ) -> RentalProduct:
        """
        Persist ``product``; create its inventory pool when ``initial_stock`` is given.

        Products without a pool are not stock-tracked: orders for them skip
        window checks and pool counters.
        """

        def work() -> RentalProduct:
            row = RentalProductModel.from_dto(product, actor_id)
            row.stamp_created(self.clock.now(), actor_id)
            self.session.add(row)
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise RentalError(
                    ErrorKind.INVALID_PRODUCT,
                    f"Product code {product.code} is already registered",
                    field="code",
                    code=product.code,
                ) from exc
            if initial_stock is not None:
                threshold = alert_threshold
                if threshold is None:
                    threshold = self.settings.low_stock_threshold
                self.ledger.create_pool(
                    product.id,
                    actor_id,
                    initial_stock=initial_stock,
                    alert_threshold=threshold,
                    reorder_point=reorder_point,
                )
            logger.info(
                "rental_product_registered",
                extra={"product_code": product.code, "initial_stock": initial_stock},
            )
            return row.to_dto()

        return self._commit(work, product_id=product.id, actor_id=actor_id)

    def get_product(self, product_id: UUID) -> RentalProduct:
        row = self.session.get(RentalProductModel, product_id)
        if row is None:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                f"Product {product_id} does not exist",
                field="product_id",
                product_id=product_id,
            )
        return row.to_dto()

    def stock(self, product_id: UUID) -> PoolState:
        return self.ledger.get_pool(product_id)

    def receive_stock(self, product_id: UUID, qty: int, actor_id: UUID) -> PoolState:
        return self._commit(
            lambda: self.ledger.add_stock(product_id, qty, actor_id),
            product_id=product_id, actor_id=actor_id,
        )

    def send_to_maintenance(
        self,
        product_id: UUID,
        qty: int,
        actor_id: UUID,
        source: SourcePool | str = SourcePool.AVAILABLE,
    ) -> PoolState:
        return self._commit(
            lambda: self.ledger.move_to_maintenance(product_id, qty, source, actor_id),
            product_id=product_id, actor_id=actor_id,
        )

    def complete_maintenance(self, product_id: UUID, qty: int, actor_id: UUID) -> PoolState:
        return self._commit(
            lambda: self.ledger.complete_maintenance(product_id, qty, actor_id),
            product_id=product_id, actor_id=actor_id,
        )

    def write_off(
        self,
        product_id: UUID,
        qty: int,
        actor_id: UUID,
        target: TargetPool | str = TargetPool.DAMAGED,
        source: SourcePool | str = SourcePool.AVAILABLE,
    ) -> PoolState:
        target = TargetPool(target)
        if target is TargetPool.MAINTENANCE:
            return self.send_to_maintenance(product_id, qty, actor_id, source)
        mark = self.ledger.mark_as_damaged if target is TargetPool.DAMAGED else self.ledger.mark_as_lost
        return self._commit(
            lambda: mark(product_id, qty, source, actor_id),
            product_id=product_id, actor_id=actor_id,
        )

    def _commit(self, work: Callable[[], T], **context) -> T:
        with LogContext.bind(**context):
            try:
                result = work()
                self.session.commit()
                return result
            except RentalError as exc:
                self.session.rollback()
                if exc.is_critical:
                    logger.error(
                        "catalog_operation_critical",
                        extra={"error_code": exc.code, "error_payload": exc.payload},
                    )
                    dispatch_admin_alert(self.hook, exc)
                raise
            except Exception:
                self.session.rollback()
                raise
