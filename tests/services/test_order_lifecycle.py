"""
Tests for OrderLifecycleService.

Clock: 2024-01-01 09:00 UTC.  Default product: 2 units at 1000/day,
tax 10%, overdue fee 10% of the order total per day late.

A 1-unit order for 2024-01-10..14 (5 days) costs
    5000 rental + 500 tax = 5500.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from rental_config.provider import MappingConfigProvider
from rental_config.schema import RentalSettings
from rental_kernel.domain.order_status import OrderStatus
from rental_kernel.domain.validation import CustomerProfile
from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.services.order_number import OrderNumberService
from rental_services.notifications import RecordingNotificationHook
from rental_services.order_lifecycle import (
    CreateOrderRequest,
    OrderLifecycleService,
    ReturnCondition,
)

D = Decimal
START, END = date(2024, 1, 10), date(2024, 1, 14)


@pytest.fixture
def active_order(make_product, place_order, lifecycle, test_actor_id):
    """Factory: a started 1-unit order for START..END on a 2-unit product."""

    def _make(product=None, start=START, end=END, quantity=1):
        product = product or make_product(stock=2)
        order = place_order(product, start, end, quantity=quantity)
        lifecycle.approve(order.id, test_actor_id)
        return lifecycle.start(order.id, test_actor_id)

    return _make


# =============================================================================
# Create
# =============================================================================


class TestCreate:

    def test_creates_pending_order_with_fees(self, make_product, place_order, lifecycle):
        product = make_product(stock=2)
        order = place_order(product, START, END)

        assert order.status is OrderStatus.PENDING
        assert order.order_no == "R202401010001"
        assert order.fees.rental_fee == D("5000.00")
        assert order.fees.tax_amount == D("500.00")
        assert order.total_amount == D("5500.00")
        assert lifecycle.ledger.get_pool(product.id).reserved == 1

    def test_emits_created_event(self, make_product, place_order, hook):
        order = place_order(make_product(), START, END)

        assert hook.event_types() == ["order_created"]
        event = hook.events[0]
        assert event.order_no == order.order_no
        assert event.fee_deltas == {"rental_fee": D("5000.00"), "tax_amount": D("500.00")}
        assert event.total_amount == D("5500.00")

    def test_delivery_and_deposit(self, make_product, session, clock, hook, customer, test_actor_id):
        product = make_product(deposit_amount=D("3000"))
        service = OrderLifecycleService(
            session, RentalSettings(deposit_required=True), clock=clock, hook=hook,
        )
        order = service.create(
            CreateOrderRequest(customer, product.id, 1, date(2024, 1, 10), date(2024, 1, 11),
                               delivery_method="express"),
            actor_id=test_actor_id,
        )
        # 2000 + 200 tax, below the free-delivery threshold
        assert order.fees.delivery_fee == D("750.00")
        assert order.total_amount == D("2950.00")
        assert order.fees.deposit_fee == D("3000.00")
        assert order.amount_due == D("5950.00")

    def test_auto_approval(self, make_product, session, clock, hook, customer, test_actor_id):
        product = make_product()
        service = OrderLifecycleService(
            session, RentalSettings(auto_approval=True), clock=clock, hook=hook,
        )
        order = service.create(
            CreateOrderRequest(customer, product.id, 1, START, END), actor_id=test_actor_id,
        )
        assert order.status is OrderStatus.RESERVED
        assert order.approved_at is not None
        assert hook.event_types() == ["order_created", "approved"]

    def test_validation_failures_aggregate(self, make_product, place_order, hook):
        product = make_product()
        with pytest.raises(RentalError) as exc_info:
            place_order(product, date(2023, 12, 1), date(2023, 12, 5), quantity=0)

        error = exc_info.value
        assert error.kind is ErrorKind.VALIDATION_FAILED
        assert {e["code"] for e in error.payload["errors"]} == {"INVALID_PERIOD", "INVALID_QUANTITY"}
        assert hook.events == []
        assert hook.alerts == []

    def test_unknown_product(self, place_order):
        ghost = type("Ghost", (), {"id": uuid4()})()
        with pytest.raises(RentalError) as exc_info:
            place_order(ghost, START, END)
        assert exc_info.value.kind is ErrorKind.INVALID_PRODUCT

    def test_disabled_product(self, make_product, place_order):
        product = make_product(is_enabled=False)
        with pytest.raises(RentalError) as exc_info:
            place_order(product, START, END)
        assert exc_info.value.kind is ErrorKind.PRODUCT_UNAVAILABLE

    def test_customer_with_outstanding_overdue_rejected(
        self, make_product, place_order, active_order, lifecycle,
    ):
        active_order()
        lifecycle.mark_overdue(as_of=date(2024, 1, 16))

        with pytest.raises(RentalError) as exc_info:
            place_order(make_product(), date(2024, 2, 1), date(2024, 2, 3))
        assert exc_info.value.kind is ErrorKind.CUSTOMER_INELIGIBLE

    def test_invalid_contact(self, make_product, place_order):
        bad = CustomerProfile(id=uuid4(), email="not-an-email")
        with pytest.raises(RentalError) as exc_info:
            place_order(make_product(), START, END, for_customer=bad)
        assert exc_info.value.kind is ErrorKind.INVALID_FORMAT

    def test_failed_create_rolls_back_everything(
        self, make_product, place_order, lifecycle, hook, monkeypatch,
    ):
        product = make_product(stock=2)

        def exhausted(self, business_date):
            raise RentalError(ErrorKind.ORDER_NUMBER_EXHAUSTED, "no numbers left")

        monkeypatch.setattr(OrderNumberService, "next_order_number", exhausted)
        with pytest.raises(RentalError):
            place_order(product, START, END)
        monkeypatch.undo()

        assert lifecycle.ledger.get_pool(product.id).reserved == 0
        assert [a.code for a in hook.alerts] == ["ORDER_NUMBER_EXHAUSTED"]
        order = place_order(product, START, END)
        assert order.order_no.endswith("0001")

    def test_settings_read_from_provider_per_operation(
        self, make_product, session, clock, hook, customer, test_actor_id,
    ):
        class SwitchableTax(MappingConfigProvider):
            tax_rate = "0.10"

            def get(self, key, default=None):
                if key == "tax_rate":
                    return self.tax_rate
                return super().get(key, default)

        provider = SwitchableTax()
        service = OrderLifecycleService(session, config=provider, clock=clock, hook=hook)
        product = make_product(stock=5)
        first = service.create(CreateOrderRequest(customer, product.id, 1, START, END), test_actor_id)
        provider.tax_rate = "0.08"
        second = service.create(CreateOrderRequest(customer, product.id, 1, START, END), test_actor_id)

        assert first.fees.tax_amount == D("500.00")
        assert second.fees.tax_amount == D("400.00")

    def test_settings_and_config_are_exclusive(self, session):
        with pytest.raises(ValueError):
            OrderLifecycleService(session, RentalSettings(), config=MappingConfigProvider())


# =============================================================================
# Approve / start / cancel
# =============================================================================


class TestTransitions:

    def test_approve_then_start(self, make_product, place_order, lifecycle, hook, test_actor_id):
        product = make_product(stock=2)
        order = place_order(product, START, END)

        approved = lifecycle.approve(order.id, test_actor_id)
        assert approved.status is OrderStatus.RESERVED
        started = lifecycle.start(order.id, test_actor_id)
        assert started.status is OrderStatus.ACTIVE
        assert started.started_at is not None

        pool = lifecycle.ledger.get_pool(product.id)
        assert (pool.reserved, pool.rented) == (0, 1)
        assert hook.event_types() == ["order_created", "approved", "started"]

    def test_start_requires_approval(self, make_product, place_order, lifecycle, test_actor_id):
        order = place_order(make_product(), START, END)
        with pytest.raises(RentalError) as exc_info:
            lifecycle.start(order.id, test_actor_id)

        error = exc_info.value
        assert error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert error.payload["current_status"] == "pending"
        assert error.payload["allowed_statuses"] == ["reserved"]
        assert lifecycle.get_order(order.id).status is OrderStatus.PENDING

    def test_second_approve_rejected(self, make_product, place_order, lifecycle, hook, test_actor_id):
        product = make_product(stock=2)
        order = place_order(product, START, END)
        lifecycle.approve(order.id, test_actor_id)

        with pytest.raises(RentalError) as exc_info:
            lifecycle.approve(order.id, test_actor_id)

        error = exc_info.value
        assert error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert error.payload["current_status"] == "reserved"
        assert error.payload["allowed_statuses"] == ["pending"]
        after = lifecycle.get_order(order.id)
        assert after.status is OrderStatus.RESERVED
        assert lifecycle.ledger.get_pool(product.id).reserved == 1
        assert hook.event_types() == ["order_created", "approved"]

    def test_cancel_releases_reservation(self, make_product, place_order, lifecycle, hook, test_actor_id):
        product = make_product(stock=2)
        order = place_order(product, START, END, quantity=2)
        lifecycle.approve(order.id, test_actor_id)

        cancelled = lifecycle.cancel(order.id, reason="changed plans", actor_id=test_actor_id)
        assert cancelled.status is OrderStatus.CANCELLED
        assert cancelled.cancel_reason == "changed plans"
        assert lifecycle.ledger.get_pool(product.id).reserved == 0
        assert hook.events[-1].payload == {"reason": "changed plans"}

    def test_active_order_cannot_be_cancelled(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        with pytest.raises(RentalError) as exc_info:
            lifecycle.cancel(order.id, actor_id=test_actor_id)
        assert exc_info.value.payload["allowed_statuses"] == ["pending", "reserved"]

    def test_unknown_order(self, lifecycle, test_actor_id):
        with pytest.raises(RentalError) as exc_info:
            lifecycle.approve(uuid4(), test_actor_id)
        assert exc_info.value.kind is ErrorKind.ORDER_NOT_FOUND

    def test_stale_write_is_concurrent_modification(
        self, make_product, place_order, lifecycle, session, hook, monkeypatch, test_actor_id,
    ):
        order = place_order(make_product(), START, END)

        def stale_commit():
            raise StaleDataError("version mismatch")

        monkeypatch.setattr(session, "commit", stale_commit)
        with pytest.raises(RentalError) as exc_info:
            lifecycle.approve(order.id, test_actor_id)
        monkeypatch.undo()

        assert exc_info.value.kind is ErrorKind.CONCURRENT_MODIFICATION
        assert exc_info.value.retryable
        assert lifecycle.get_order(order.id).status is OrderStatus.PENDING
        assert hook.event_types() == ["order_created"]


# =============================================================================
# Return
# =============================================================================


class TestReturn:

    def test_on_time_return(self, active_order, lifecycle, hook, test_actor_id):
        order = active_order()
        returned = lifecycle.return_rental(order.id, END, actor_id=test_actor_id)

        assert returned.status is OrderStatus.RETURNED
        assert returned.actual_return_date == END
        assert returned.total_amount == D("5500.00")
        pool = lifecycle.ledger.get_pool(order.product_id)
        assert (pool.available, pool.rented) == (2, 0)
        assert hook.events[-1].payload["days_late"] == 0

    def test_late_return_charges_overdue_fee(self, active_order, lifecycle, hook, test_actor_id):
        order = active_order()
        returned = lifecycle.return_rental(order.id, date(2024, 1, 17), actor_id=test_actor_id)

        # 10% of 5500 per day, 3 days
        assert returned.status is OrderStatus.OVERDUE
        assert returned.fees.overdue_fee == D("1650.00")
        assert returned.total_amount == D("7150.00")
        assert hook.events[-1].fee_deltas == {"overdue_fee": D("1650.00")}

    def test_late_returned_order_cannot_be_returned_again(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        lifecycle.return_rental(order.id, date(2024, 1, 17), actor_id=test_actor_id)

        with pytest.raises(RentalError) as exc_info:
            lifecycle.return_rental(order.id, date(2024, 1, 18), actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.INVALID_STATE_TRANSITION

    def test_swept_overdue_order_returns(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        lifecycle.mark_overdue(as_of=date(2024, 1, 16))

        returned = lifecycle.return_rental(order.id, date(2024, 1, 16), actor_id=test_actor_id)
        assert returned.status is OrderStatus.RETURNED
        assert returned.fees.overdue_fee == D("1100.00")
        assert returned.total_amount == D("6600.00")

    def test_damaged_return(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        condition = ReturnCondition(condition="cracked lens", damage_fee=D("2000"), damaged_units=1)
        returned = lifecycle.return_rental(order.id, END, condition, actor_id=test_actor_id)

        assert returned.status is OrderStatus.DAMAGED
        assert returned.return_condition == "cracked lens"
        assert returned.total_amount == D("7500.00")
        pool = lifecycle.ledger.get_pool(order.product_id)
        assert (pool.available, pool.rented, pool.damaged) == (1, 0, 1)
        assert pool.total_quantity == 2

    def test_lost_units_on_return(self, make_product, active_order, lifecycle, test_actor_id):
        order = active_order(product=make_product(stock=3), quantity=2)
        condition = ReturnCondition(lost_units=1)
        lifecycle.return_rental(order.id, END, condition, actor_id=test_actor_id)

        pool = lifecycle.ledger.get_pool(order.product_id)
        assert (pool.available, pool.rented, pool.lost) == (2, 0, 1)

    def test_early_return_discount_when_enabled(
        self, make_product, session, clock, hook, customer, test_actor_id,
    ):
        service = OrderLifecycleService(
            session, RentalSettings(early_return_discount_enabled=True), clock=clock, hook=hook,
        )
        product = make_product()
        order = service.create(CreateOrderRequest(customer, product.id, 1, START, END), test_actor_id)
        service.approve(order.id, test_actor_id)
        service.start(order.id, test_actor_id)

        # 5500 / 5 = 1100 per day, 2 days saved, 10%
        returned = service.return_rental(order.id, date(2024, 1, 12), actor_id=test_actor_id)
        assert returned.fees.early_return_discount == D("220.00")
        assert returned.total_amount == D("5280.00")

    def test_early_return_without_discount_by_default(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        returned = lifecycle.return_rental(order.id, date(2024, 1, 12), actor_id=test_actor_id)
        assert returned.fees.early_return_discount == D("0")
        assert returned.total_amount == D("5500.00")

    def test_return_before_start_rejected(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        with pytest.raises(RentalError) as exc_info:
            lifecycle.return_rental(order.id, date(2024, 1, 9), actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.INVALID_PERIOD

    def test_too_many_damaged_units(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        with pytest.raises(RentalError) as exc_info:
            lifecycle.return_rental(order.id, END, ReturnCondition(damaged_units=2), test_actor_id)
        assert exc_info.value.kind is ErrorKind.INVALID_QUANTITY

    def test_pending_order_cannot_be_returned(self, make_product, place_order, lifecycle, test_actor_id):
        order = place_order(make_product(), START, END)
        with pytest.raises(RentalError) as exc_info:
            lifecycle.return_rental(order.id, END, actor_id=test_actor_id)
        assert exc_info.value.payload["allowed_statuses"] == ["active", "overdue"]

    def test_negative_fee_in_condition(self):
        with pytest.raises(RentalError) as exc_info:
            ReturnCondition(damage_fee=D("-1"))
        assert exc_info.value.kind is ErrorKind.OUT_OF_RANGE


# =============================================================================
# Extend / overdue sweep / lost
# =============================================================================


class TestExtend:

    def test_extension_fee(self, active_order, lifecycle, hook, test_actor_id):
        order = active_order()
        extended = lifecycle.extend(order.id, date(2024, 1, 16), actor_id=test_actor_id)

        # 5500 / 5 days x 2 extra days
        assert extended.end_date == date(2024, 1, 16)
        assert extended.fees.extension_fee == D("2200.00")
        assert extended.total_amount == D("7700.00")
        assert extended.status is OrderStatus.ACTIVE
        assert hook.events[-1].payload["previous_end_date"] == END

    def test_extension_into_booked_window(
        self, make_product, place_order, active_order, lifecycle, test_actor_id,
    ):
        product = make_product(stock=1)
        order = active_order(product=product)
        place_order(product, date(2024, 1, 15), date(2024, 1, 19))

        with pytest.raises(RentalError) as exc_info:
            lifecycle.extend(order.id, date(2024, 1, 16), actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.PERIOD_CONFLICT
        assert lifecycle.get_order(order.id).end_date == END

    def test_end_date_must_move_forward(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        with pytest.raises(RentalError) as exc_info:
            lifecycle.extend(order.id, END, actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.INVALID_PERIOD

    def test_extension_respects_max_days(self, make_product, active_order, lifecycle, test_actor_id):
        order = active_order(product=make_product(max_rental_days=6))
        with pytest.raises(RentalError) as exc_info:
            lifecycle.extend(order.id, date(2024, 1, 16), actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.OUT_OF_RANGE
        assert exc_info.value.payload["max_days"] == 6

    def test_product_extension_rate(self, make_product, active_order, lifecycle, test_actor_id):
        order = active_order(product=make_product(extension_rate=D("1.5")))
        extended = lifecycle.extend(order.id, date(2024, 1, 16), actor_id=test_actor_id)
        assert extended.fees.extension_fee == D("3300.00")


class TestOverdueSweep:

    def test_marks_only_past_due_active_orders(
        self, make_product, place_order, active_order, lifecycle, hook,
    ):
        late = active_order()
        on_time = active_order(end=date(2024, 1, 20))
        pending = place_order(make_product(), START, END)

        swept = lifecycle.mark_overdue(as_of=date(2024, 1, 16))

        assert [o.id for o in swept] == [late.id]
        assert lifecycle.get_order(late.id).status is OrderStatus.OVERDUE
        assert lifecycle.get_order(on_time.id).status is OrderStatus.ACTIVE
        assert lifecycle.get_order(pending.id).status is OrderStatus.PENDING
        assert hook.events[-1].payload == {"days_late": 2}

    def test_sweep_is_idempotent(self, active_order, lifecycle):
        active_order()
        lifecycle.mark_overdue(as_of=date(2024, 1, 16))
        assert lifecycle.mark_overdue(as_of=date(2024, 1, 16)) == []

    def test_due_for_reminder(self, active_order, lifecycle):
        soon = active_order()
        active_order(end=date(2024, 1, 25))
        due = lifecycle.due_for_reminder(as_of=date(2024, 1, 12))
        assert [o.id for o in due] == [soon.id]


class TestReportLost:

    def test_lost_order_charges_replacement_value(self, make_product, active_order, lifecycle, test_actor_id):
        product = make_product(stock=2, replacement_value=D("40000"))
        order = active_order(product=product)

        lost = lifecycle.report_lost(order.id, actor_id=test_actor_id, notes="stolen")
        assert lost.status is OrderStatus.LOST
        assert lost.fees.damage_fee == D("40000.00")
        assert lost.total_amount == D("45500.00")
        assert lost.notes == "stolen"

        pool = lifecycle.ledger.get_pool(product.id)
        assert (pool.available, pool.rented, pool.lost) == (1, 0, 1)

    def test_lost_order_is_terminal(self, active_order, lifecycle, test_actor_id):
        order = active_order()
        lifecycle.report_lost(order.id, actor_id=test_actor_id)
        with pytest.raises(RentalError) as exc_info:
            lifecycle.return_rental(order.id, END, actor_id=test_actor_id)
        assert exc_info.value.kind is ErrorKind.INVALID_STATE_TRANSITION


# =============================================================================
# Quotes, hooks, logging
# =============================================================================


class TestQuoteAndHooks:

    def test_quote_reserves_nothing(self, make_product, lifecycle):
        product = make_product(stock=2)
        quote = lifecycle.quote(product.id, date(2024, 1, 10), date(2024, 1, 23), 1)
        assert quote.total_amount == D("14630.00")
        assert lifecycle.ledger.get_pool(product.id).reserved == 0

    def test_failing_hook_does_not_fail_operation(
        self, make_product, session, clock, customer, test_actor_id, captured_logs,
    ):
        class BrokenHook(RecordingNotificationHook):
            def emit(self, event):
                raise ConnectionError("smtp down")

        service = OrderLifecycleService(session, clock=clock, hook=BrokenHook())
        product = make_product()
        order = service.create(CreateOrderRequest(customer, product.id, 1, START, END), test_actor_id)

        assert service.get_order(order.id).status is OrderStatus.PENDING
        failures = [r for r in captured_logs() if r["message"] == "notification_hook_failed"]
        assert failures[0]["exc_type"] == "ConnectionError"

    def test_rejection_logged_at_info(self, make_product, place_order, captured_logs):
        with pytest.raises(RentalError):
            place_order(make_product(), START, END, quantity=0)
        record = [r for r in captured_logs() if r["message"] == "rental_validation_rejected"][0]
        assert record["level"] == "INFO"
        assert record["error_code"] == "INVALID_QUANTITY"

    def test_status_change_logged_with_context(
        self, make_product, place_order, lifecycle, captured_logs, test_actor_id,
    ):
        order = place_order(make_product(), START, END)
        lifecycle.approve(order.id, test_actor_id)

        record = [r for r in captured_logs() if r["message"] == "rental_order_status_changed"][-1]
        assert record["from_status"] == "pending"
        assert record["to_status"] == "reserved"
        assert record["order_id"] == str(order.id)
        assert record["actor_id"] == str(test_actor_id)
