"""
Order lifecycle service (``rental_services.order_lifecycle``).

Responsibility
--------------
Drives a rental order through its lifecycle:

    create -> pending -> approve -> reserved -> start -> active
    active -> return -> returned | overdue | damaged
    pending | reserved -> cancel -> cancelled
    active -> extend -> active (later end date)
    active -> mark_overdue -> overdue (still out)
    active | overdue -> report_lost -> lost

Each public method composes the kernel pieces in one transaction:
``ValidationGate`` for pre-checks, ``PeriodConflictResolver`` for window
capacity, the pricing engine for fees, ``InventoryLedger`` for pool
counters, ``OrderNumberService`` for the order number.

Architecture
------------
Layer: **Services** -- stateful orchestration over the kernel.

Invariants
----------
- Each public method owns its transaction boundary: ``session.commit()``
  on success, ``session.rollback()`` on any failure.  A failed create
  leaves the pool and the daily order sequence as they were.
- The order row is locked (``SELECT ... FOR UPDATE``) and its status is
  checked against ``RENTAL_ORDER_WORKFLOW`` before anything is written.
  The ``version`` column makes the status write a compare-and-swap.
- Settings are resolved once per operation into a ``RentalSettings``
  snapshot.
- Timestamps come from the injected ``Clock``; nothing is stamped
  implicitly.
- Notifications go out only after commit and never fail the operation.

Failure Modes
-------------
- Validation kinds from ``ValidationGate`` (logged at INFO).
- ``PERIOD_CONFLICT`` / ``INSUFFICIENT_STOCK`` when the window is full.
- ``INVALID_STATE_TRANSITION`` naming ``current_status`` and
  ``allowed_statuses``.
- ``CONCURRENT_MODIFICATION`` when another transaction changed the order
  or pool first (retryable).
- ``OVERCOMMIT`` / ``STOCK_CALCULATION`` are critical: logged at ERROR and
  passed to ``NotificationHook.alert_admin``.

Usage::

    service = OrderLifecycleService(session, settings, clock=clock)
    order = service.create(
        CreateOrderRequest(customer, product_id, 2, date(2024, 3, 1), date(2024, 3, 5)),
        actor_id=clerk_id,
    )
    service.approve(order.id, actor_id=clerk_id)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from rental_config.provider import ConfigProvider
from rental_config.schema import RentalSettings
from rental_engines.pricing import (
    DeliveryMethod,
    PriceQuote,
    calculate_early_return_discount,
    calculate_extension_fee,
    calculate_overdue_fee,
    quote_rental,
)
from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.clock import Clock
from rental_kernel.domain.inventory_pool import SourcePool
from rental_kernel.domain.order import RentalOrder
from rental_kernel.domain.order_status import (
    RENTAL_ORDER_WORKFLOW,
    OrderAction,
    OrderStatus,
    order_guard_executor,
)
from rental_kernel.domain.period import rental_days
from rental_kernel.domain.product import RentalProduct
from rental_kernel.domain.validation import CustomerProfile, ValidationGate
from rental_kernel.exceptions import ErrorCategory, ErrorKind, RentalError
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.models.order import RentalOrderModel
from rental_kernel.models.product import RentalProductModel
from rental_kernel.selectors.order_selector import OrderSelector
from rental_kernel.services.base import BaseService
from rental_kernel.services.inventory_ledger import InventoryLedger
from rental_kernel.services.order_number import OrderNumberService
from rental_kernel.services.period_conflict import PeriodConflictResolver
from rental_services.notifications import (
    LifecycleEvent,
    LifecycleEventType,
    LoggingNotificationHook,
    NotificationHook,
    dispatch_admin_alert,
    dispatch_event,
)

logger = get_logger("services.order_lifecycle")

T = TypeVar("T")


@dataclass(frozen=True)
class CreateOrderRequest:
    customer: CustomerProfile
    product_id: UUID
    quantity: int
    start_date: date
    end_date: date
    delivery_method: DeliveryMethod | str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReturnCondition:
    """
    What came back.

    ``damaged_units`` came back unusable and ``lost_units`` did not come
    back at all; both are moved out of service after the return.  A
    positive ``damage_fee`` makes the order ``damaged``.
    """

    condition: str = "good"
    damage_fee: Decimal = ZERO
    cleaning_fee: Decimal = ZERO
    damaged_units: int = 0
    lost_units: int = 0
    notes: str | None = None

    def __post_init__(self) -> None:
        for name in ("damage_fee", "cleaning_fee"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or value < 0:
                raise RentalError(
                    ErrorKind.OUT_OF_RANGE,
                    f"{name} must be a non-negative Decimal",
                    field=name,
                    value=value,
                )
        for name in ("damaged_units", "lost_units"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise RentalError(
                    ErrorKind.INVALID_QUANTITY,
                    f"{name} must be a non-negative whole number",
                    field=name,
                    value=value,
                )


class OrderLifecycleService(BaseService[RentalOrderModel]):
    """
    Orchestrates rental order transitions.

    Transaction boundary: this service commits on success, rolls back on
    failure.  Kernel services underneath only flush.
    """

    def __init__(
        self,
        session: Session,
        settings: RentalSettings | None = None,
        *,
        config: ConfigProvider | None = None,
        clock: Clock | None = None,
        hook: NotificationHook | None = None,
    ):
        super().__init__(session, clock)
        if settings is not None and config is not None:
            raise ValueError("Pass either a settings snapshot or a config provider, not both")
        self._config = config
        self._settings = settings if settings is not None or config is not None else RentalSettings()
        self.hook: NotificationHook = hook or LoggingNotificationHook(self.settings().admin_email)
        self.ledger = InventoryLedger(session, self.clock)
        self.resolver = PeriodConflictResolver(session, self.ledger, self.clock)
        self.orders = OrderSelector(session)
        self.guards = order_guard_executor()

    def settings(self) -> RentalSettings:
        """Snapshot for one operation; re-read from the provider when there is one."""
        if self._config is not None:
            return RentalSettings.from_provider(self._config)
        return self._settings

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: UUID) -> RentalOrder:
        order = self.orders.get(order_id)
        if order is None:
            raise RentalError(
                ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found", order_id=order_id,
            )
        return order

    def quote(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        quantity: int,
        delivery_method: DeliveryMethod | str | None = None,
    ) -> PriceQuote:
        """Price a prospective rental without reserving anything."""
        settings = self.settings()
        gate = ValidationGate(settings.validation_rules())
        product = self._load_product(product_id)
        gate.collect(
            lambda: gate.validate_product(product),
            lambda: gate.validate_rental_period(start_date, end_date, self.clock.today(), product),
            lambda: gate.validate_quantity(quantity, product),
        )
        return quote_rental(
            product,
            rental_days(start_date, end_date),
            quantity,
            settings.pricing_rates(),
            delivery_method,
        )

    def due_for_reminder(self, as_of: date | None = None) -> list[RentalOrder]:
        """Active orders ending within ``reminder_days`` of ``as_of``."""
        return self.orders.find_due_for_reminder(
            as_of or self.clock.today(), self.settings().reminder_days,
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def create(self, request: CreateOrderRequest, actor_id: UUID) -> RentalOrder:
        """
        Validate, check the window, price, reserve, number and persist.

        The order starts ``pending``, or ``reserved`` when auto-approval
        is on.
        """
        return self._run(
            "create",
            lambda: self._create(request, actor_id),
            actor_id=actor_id,
            product_id=request.product_id,
        )

    def approve(self, order_id: UUID, actor_id: UUID) -> RentalOrder:
        return self._run(
            "approve", lambda: self._approve(order_id, actor_id),
            order_id=order_id, actor_id=actor_id,
        )

    def start(self, order_id: UUID, actor_id: UUID) -> RentalOrder:
        return self._run(
            "start", lambda: self._start(order_id, actor_id),
            order_id=order_id, actor_id=actor_id,
        )

    def return_rental(
        self,
        order_id: UUID,
        return_date: date,
        condition: ReturnCondition | None = None,
        actor_id: UUID | None = None,
    ) -> RentalOrder:
        return self._run(
            "return",
            lambda: self._return(order_id, return_date, condition or ReturnCondition(), actor_id),
            order_id=order_id, actor_id=actor_id,
        )

    def cancel(self, order_id: UUID, reason: str | None = None, actor_id: UUID | None = None) -> RentalOrder:
        return self._run(
            "cancel", lambda: self._cancel(order_id, reason, actor_id),
            order_id=order_id, actor_id=actor_id,
        )

    def extend(self, order_id: UUID, new_end_date: date, actor_id: UUID | None = None) -> RentalOrder:
        return self._run(
            "extend", lambda: self._extend(order_id, new_end_date, actor_id),
            order_id=order_id, actor_id=actor_id,
        )

    def mark_overdue(self, as_of: date | None = None, actor_id: UUID | None = None) -> list[RentalOrder]:
        """Flag every active order whose end date is before ``as_of``."""
        return self._run(
            "mark_overdue", lambda: self._mark_overdue(as_of or self.clock.today(), actor_id),
            actor_id=actor_id,
        )

    def report_lost(self, order_id: UUID, actor_id: UUID | None = None, notes: str | None = None) -> RentalOrder:
        """Write off the rented units; the replacement value is charged as damage."""
        return self._run(
            "report_lost", lambda: self._report_lost(order_id, actor_id, notes),
            order_id=order_id, actor_id=actor_id,
        )

    # =========================================================================
    # Transition bodies (run inside _run's transaction)
    # =========================================================================

    def _create(self, request: CreateOrderRequest, actor_id: UUID):
        settings = self.settings()
        gate = ValidationGate(settings.validation_rules())
        product = self._load_product(request.product_id)
        customer = request.customer
        today = self.clock.today()

        gate.collect(
            lambda: gate.validate_product(product),
            lambda: gate.validate_rental_period(request.start_date, request.end_date, today, product),
            lambda: gate.validate_quantity(request.quantity, product),
            lambda: gate.validate_customer(
                customer, self.orders.count_outstanding_overdue(customer.id),
            ),
            lambda: gate.validate_contact(
                email=customer.email,
                phone=customer.phone,
                postal_code=customer.postal_code,
                name=customer.name,
                address=customer.address,
            ),
        )

        tracked = self.ledger.has_pool(product.id)
        window = None
        if tracked:
            window = self.resolver.ensure_available(
                product.id, request.start_date, request.end_date, request.quantity,
            )

        days = rental_days(request.start_date, request.end_date)
        quote = quote_rental(
            product, days, request.quantity, settings.pricing_rates(), request.delivery_method,
        )
        gate.validate_amount(quote.total_amount, "total_amount")

        if tracked:
            self.ledger.reserve(
                product.id, request.quantity, actor_id, window_available=window.available,
            )

        order_no = OrderNumberService(
            self.session, settings.order_number_prefix,
        ).next_order_number(today)

        now = self.clock.now()
        order = RentalOrderModel(
            order_no=order_no,
            customer_id=customer.id,
            product_id=product.id,
            quantity=request.quantity,
            start_date=request.start_date,
            end_date=request.end_date,
            status=OrderStatus.PENDING.value,
            notes=request.notes,
        )
        order.apply_fees(quote.to_fees())
        order.stamp_created(now, actor_id)
        self.session.add(order)
        self.session.flush()

        if tracked:
            self.resolver.verify_no_overcommit(product.id, request.start_date, request.end_date)

        logger.info(
            "rental_order_created",
            extra={
                "order_no": order_no,
                "product_id": str(product.id),
                "quantity": request.quantity,
                "rental_days": days,
                "total_amount": order.total_amount,
            },
        )
        created = order.to_dto()
        events = [
            LifecycleEvent.for_order(
                LifecycleEventType.ORDER_CREATED, created, now,
                fee_deltas={
                    "rental_fee": quote.rental_fee,
                    "insurance_fee": quote.insurance_fee,
                    "tax_amount": quote.tax_amount,
                    "delivery_fee": quote.delivery_fee,
                    "deposit_fee": quote.deposit_amount,
                },
            ),
        ]

        if settings.auto_approval:
            self._move(order, OrderAction.APPROVE, OrderStatus.RESERVED, actor_id, now)
            order.approved_at = now
            self.session.flush()
            created = order.to_dto()
            events.append(LifecycleEvent.for_order(LifecycleEventType.APPROVED, created, now))

        return created, events

    def _approve(self, order_id: UUID, actor_id: UUID):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.APPROVE)
        now = self.clock.now()

        self._move(order, OrderAction.APPROVE, OrderStatus.RESERVED, actor_id, now)
        order.approved_at = now
        self.session.flush()

        dto = order.to_dto()
        return dto, [LifecycleEvent.for_order(LifecycleEventType.APPROVED, dto, now)]

    def _start(self, order_id: UUID, actor_id: UUID):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.START)
        now = self.clock.now()

        if self.ledger.has_pool(order.product_id):
            self.ledger.activate_rental(order.product_id, order.quantity, actor_id)
        self._move(order, OrderAction.START, OrderStatus.ACTIVE, actor_id, now)
        order.started_at = now
        self.session.flush()

        dto = order.to_dto()
        return dto, [LifecycleEvent.for_order(LifecycleEventType.STARTED, dto, now)]

    def _return(self, order_id: UUID, return_date: date, condition: ReturnCondition, actor_id: UUID | None):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.RETURN)

        if return_date is None:
            raise RentalError(ErrorKind.REQUIRED, "Return date is required", field="return_date")
        if return_date < order.start_date:
            raise RentalError(
                ErrorKind.INVALID_PERIOD,
                "Return date cannot be before the rental start date",
                field="return_date",
                return_date=return_date,
                start_date=order.start_date,
            )
        if condition.damaged_units + condition.lost_units > order.quantity:
            raise RentalError(
                ErrorKind.INVALID_QUANTITY,
                "Damaged and lost units exceed the rented quantity",
                field="damaged_units",
                damaged_units=condition.damaged_units,
                lost_units=condition.lost_units,
                quantity=order.quantity,
            )

        settings = self.settings()
        product = self._load_product(order.product_id)
        period = order.period
        days_late = period.days_late(return_date)
        days_saved = period.days_saved(return_date)

        overdue_fee = calculate_overdue_fee(order.total_amount, days_late, settings.overdue_fee_rate)
        early_discount = ZERO
        if settings.early_return_discount_enabled and days_saved > 0:
            rate = product.early_return_rate
            if rate is None:
                rate = settings.default_early_return_rate
            early_discount = calculate_early_return_discount(
                order.total_amount, period.days, days_saved, rate,
            )

        target = self._resolve_target(
            order, OrderAction.RETURN,
            {"days_late": days_late, "damage_fee": condition.damage_fee},
        )

        now = self.clock.now()
        order.overdue_fee = round_money(order.overdue_fee + overdue_fee)
        order.early_return_discount = round_money(order.early_return_discount + early_discount)
        order.damage_fee = round_money(order.damage_fee + condition.damage_fee)
        order.cleaning_fee = round_money(order.cleaning_fee + condition.cleaning_fee)
        order.recompute_total()
        order.actual_return_date = return_date
        order.returned_at = now
        order.return_condition = condition.condition
        if condition.notes:
            order.notes = "\n".join(n for n in (order.notes, condition.notes) if n)
        self._move(order, OrderAction.RETURN, target, actor_id, now)

        if self.ledger.has_pool(order.product_id):
            # Units leave service straight from the rented pool; the rest come back
            if condition.damaged_units:
                self.ledger.mark_as_damaged(
                    order.product_id, condition.damaged_units, SourcePool.RENTED, actor_id,
                )
            if condition.lost_units:
                self.ledger.mark_as_lost(
                    order.product_id, condition.lost_units, SourcePool.RENTED, actor_id,
                )
            back = order.quantity - condition.damaged_units - condition.lost_units
            if back:
                self.ledger.return_from_rental(order.product_id, back, actor_id)
        self.session.flush()

        dto = order.to_dto()
        event = LifecycleEvent.for_order(
            LifecycleEventType.RETURNED, dto, now,
            fee_deltas={
                "overdue_fee": overdue_fee,
                "early_return_discount": early_discount,
                "damage_fee": condition.damage_fee,
                "cleaning_fee": condition.cleaning_fee,
            },
            days_late=days_late,
            damaged_units=condition.damaged_units,
            lost_units=condition.lost_units,
        )
        return dto, [event]

    def _cancel(self, order_id: UUID, reason: str | None, actor_id: UUID | None):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.CANCEL)
        now = self.clock.now()

        if self.ledger.has_pool(order.product_id):
            self.ledger.cancel_reservation(order.product_id, order.quantity, actor_id)
        self._move(order, OrderAction.CANCEL, OrderStatus.CANCELLED, actor_id, now)
        order.cancel_reason = reason
        order.cancelled_at = now
        self.session.flush()

        dto = order.to_dto()
        return dto, [LifecycleEvent.for_order(LifecycleEventType.CANCELLED, dto, now, reason=reason)]

    def _extend(self, order_id: UUID, new_end_date: date, actor_id: UUID | None):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.EXTEND)

        if new_end_date is None:
            raise RentalError(ErrorKind.REQUIRED, "New end date is required", field="new_end_date")
        if new_end_date <= order.end_date:
            raise RentalError(
                ErrorKind.INVALID_PERIOD,
                "New end date must be after the current end date",
                field="new_end_date",
                new_end_date=new_end_date,
                end_date=order.end_date,
            )

        settings = self.settings()
        product = self._load_product(order.product_id)
        max_days = settings.max_rental_days
        if product.max_rental_days is not None:
            max_days = min(max_days, product.max_rental_days)
        new_days = rental_days(order.start_date, new_end_date)
        if new_days > max_days:
            raise RentalError(
                ErrorKind.OUT_OF_RANGE,
                f"Maximum rental period is {max_days} day(s)",
                field="new_end_date",
                days=new_days,
                max_days=max_days,
            )

        period = order.period
        window = period.extension_window(new_end_date)
        tracked = self.ledger.has_pool(order.product_id)
        if tracked:
            self.resolver.ensure_available(
                order.product_id, window.start_date, window.end_date, order.quantity,
                exclude_order_id=order.id,
            )

        rate = product.extension_rate
        if rate is None:
            rate = settings.default_extension_rate
        fee = calculate_extension_fee(order.total_amount, period.days, window.days, rate)

        now = self.clock.now()
        previous_end = order.end_date
        order.extension_fee = round_money(order.extension_fee + fee)
        order.end_date = new_end_date
        order.recompute_total()
        self._move(order, OrderAction.EXTEND, OrderStatus.ACTIVE, actor_id, now)
        self.session.flush()

        if tracked:
            self.resolver.verify_no_overcommit(order.product_id, window.start_date, window.end_date)

        dto = order.to_dto()
        event = LifecycleEvent.for_order(
            LifecycleEventType.EXTENDED, dto, now,
            fee_deltas={"extension_fee": fee},
            previous_end_date=previous_end,
            new_end_date=new_end_date,
        )
        return dto, [event]

    def _mark_overdue(self, as_of: date, actor_id: UUID | None):
        now = self.clock.now()
        swept: list[RentalOrder] = []
        events: list[LifecycleEvent] = []
        for candidate in self.orders.find_active_past_due(as_of):
            order = self._lock_order(candidate.id)
            target = RENTAL_ORDER_WORKFLOW.resolve(
                OrderAction.MARK_OVERDUE.value,
                order.status,
                lambda guard: self.guards.evaluate(guard, {
                    "as_of": as_of,
                    "end_date": order.end_date,
                    "actual_return_date": order.actual_return_date,
                }),
            )
            if target is None:
                continue
            self._move(order, OrderAction.MARK_OVERDUE, OrderStatus(target), actor_id, now)
            self.session.flush()
            dto = order.to_dto()
            swept.append(dto)
            events.append(
                LifecycleEvent.for_order(
                    LifecycleEventType.OVERDUE, dto, now,
                    days_late=(as_of - order.end_date).days,
                )
            )
        logger.info("rental_overdue_sweep", extra={"as_of": as_of, "count": len(swept)})
        return swept, events

    def _report_lost(self, order_id: UUID, actor_id: UUID | None, notes: str | None):
        order = self._lock_order(order_id)
        self._check_transition(order, OrderAction.REPORT_LOST)
        product = self._load_product(order.product_id)

        charge = ZERO
        if product.replacement_value is not None:
            charge = round_money(product.replacement_value * order.quantity)

        now = self.clock.now()
        order.damage_fee = round_money(order.damage_fee + charge)
        order.recompute_total()
        if notes:
            order.notes = "\n".join(n for n in (order.notes, notes) if n)
        if self.ledger.has_pool(order.product_id):
            self.ledger.mark_as_lost(order.product_id, order.quantity, SourcePool.RENTED, actor_id)
        self._move(order, OrderAction.REPORT_LOST, OrderStatus.LOST, actor_id, now)
        self.session.flush()

        dto = order.to_dto()
        event = LifecycleEvent.for_order(
            LifecycleEventType.LOST, dto, now, fee_deltas={"damage_fee": charge},
        )
        return dto, [event]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _run(
        self,
        operation: str,
        work: Callable[[], tuple[T, list[LifecycleEvent]]],
        **context: Any,
    ) -> T:
        with LogContext.bind(**context):
            try:
                result, events = work()
                self.session.commit()
            except StaleDataError as exc:
                self.session.rollback()
                error = RentalError(
                    ErrorKind.CONCURRENT_MODIFICATION,
                    f"Order was modified concurrently during {operation}",
                    operation=operation,
                )
                self._report_failure(operation, error)
                raise error from exc
            except RentalError as exc:
                self.session.rollback()
                self._report_failure(operation, exc)
                raise
            except Exception:
                self.session.rollback()
                logger.exception("rental_operation_failed", extra={"operation": operation})
                raise

            for event in events:
                dispatch_event(self.hook, event)
            return result

    def _report_failure(self, operation: str, error: RentalError) -> None:
        extra = {"operation": operation, "error_code": error.code, "error_payload": error.payload}
        if error.is_critical:
            logger.error("rental_operation_critical", extra=extra)
            dispatch_admin_alert(self.hook, error)
        elif error.category is ErrorCategory.VALIDATION:
            logger.info("rental_validation_rejected", extra=extra)
        else:
            logger.warning("rental_operation_rejected", extra=extra)

    def _load_product(self, product_id: UUID) -> RentalProduct:
        row = self.session.get(RentalProductModel, product_id)
        if row is None:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                f"Product {product_id} does not exist",
                field="product_id",
                product_id=product_id,
            )
        return row.to_dto()

    def _lock_order(self, order_id: UUID) -> RentalOrderModel:
        stmt = (
            select(RentalOrderModel)
            .where(RentalOrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = self.session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise RentalError(
                ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found", order_id=order_id,
            )
        return order

    def _check_transition(self, order: RentalOrderModel, action: OrderAction) -> None:
        allowed = RENTAL_ORDER_WORKFLOW.sources_for(action.value)
        if order.actual_return_date is not None:
            # a late return is overdue but already back
            allowed = tuple(s for s in allowed if s != OrderStatus.OVERDUE.value)
        ValidationGate().validate_status(
            order.status,
            allowed,
            action.value,
            order_id=order.id,
            order_no=order.order_no,
        )

    def _resolve_target(
        self, order: RentalOrderModel, action: OrderAction, context: dict[str, Any],
    ) -> OrderStatus:
        target = RENTAL_ORDER_WORKFLOW.resolve(
            action.value, order.status, lambda guard: self.guards.evaluate(guard, context),
        )
        if target is None:
            raise RentalError(
                ErrorKind.INVALID_STATE_TRANSITION,
                f"{action.value} has no transition from '{order.status}'",
                action=action.value,
                current_status=order.status,
                allowed_statuses=list(RENTAL_ORDER_WORKFLOW.sources_for(action.value)),
            )
        return OrderStatus(target)

    def _move(
        self,
        order: RentalOrderModel,
        action: OrderAction,
        target: OrderStatus,
        actor_id: UUID | None,
        now: datetime,
    ) -> None:
        allowed = RENTAL_ORDER_WORKFLOW.targets_for(action.value, order.status)
        if target.value not in allowed:
            raise RentalError(
                ErrorKind.INVALID_STATE_TRANSITION,
                f"{action.value} cannot move an order from '{order.status}' to '{target.value}'",
                action=action.value,
                current_status=order.status,
                allowed_statuses=list(RENTAL_ORDER_WORKFLOW.sources_for(action.value)),
            )
        previous = order.status
        order.status = target.value
        order.touch(now, actor_id)
        logger.info(
            "rental_order_status_changed",
            extra={
                "order_no": order.order_no,
                "action": action.value,
                "from_status": previous,
                "to_status": target.value,
            },
        )
