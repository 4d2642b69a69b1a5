"""
Range and lookup queries over rental orders.

The overlap query is the persistence half of period conflict resolution:
it finds every order that holds units for a product during a date window.
"""

from collections.abc import Iterable
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from rental_kernel.domain.order import RentalOrder
from rental_kernel.domain.order_status import COMMITMENT_STATUSES, OrderStatus
from rental_kernel.models.order import RentalOrderModel
from rental_kernel.selectors.base import BaseSelector


def _holds_units_during(product_id: UUID, start_date: date, end_date: date) -> ColumnElement[bool]:
    """
    Orders holding units for ``product_id`` somewhere in ``[start_date, end_date]``.

    Commitment statuses use the inclusive overlap test.  An overdue order
    that has not come back keeps its units open-ended, so it blocks every
    window that ends on or after its start.
    """
    committed = and_(
        RentalOrderModel.status.in_([s.value for s in COMMITMENT_STATUSES]),
        RentalOrderModel.start_date <= end_date,
        RentalOrderModel.end_date >= start_date,
    )
    still_out = and_(
        RentalOrderModel.status == OrderStatus.OVERDUE.value,
        RentalOrderModel.actual_return_date.is_(None),
        RentalOrderModel.start_date <= end_date,
    )
    return and_(RentalOrderModel.product_id == product_id, or_(committed, still_out))


class OrderSelector(BaseSelector[RentalOrderModel]):

    def get(self, order_id: UUID) -> RentalOrder | None:
        row = self.session.get(RentalOrderModel, order_id)
        return row.to_dto() if row else None

    def get_by_order_no(self, order_no: str) -> RentalOrder | None:
        row = self.session.execute(
            select(RentalOrderModel).where(RentalOrderModel.order_no == order_no)
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def find_overlapping(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        exclude_order_id: UUID | None = None,
    ) -> list[RentalOrder]:
        stmt = select(RentalOrderModel).where(
            _holds_units_during(product_id, start_date, end_date)
        )
        if exclude_order_id is not None:
            stmt = stmt.where(RentalOrderModel.id != exclude_order_id)
        stmt = stmt.order_by(RentalOrderModel.start_date, RentalOrderModel.order_no)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def committed_quantity(
        self,
        product_id: UUID,
        start_date: date,
        end_date: date,
        exclude_order_id: UUID | None = None,
    ) -> int:
        """Sum of quantities held by other orders during the window."""
        stmt = select(func.coalesce(func.sum(RentalOrderModel.quantity), 0)).where(
            _holds_units_during(product_id, start_date, end_date)
        )
        if exclude_order_id is not None:
            stmt = stmt.where(RentalOrderModel.id != exclude_order_id)
        return int(self.session.execute(stmt).scalar_one())

    def find_by_customer(
        self,
        customer_id: UUID,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[RentalOrder]:
        stmt = select(RentalOrderModel).where(RentalOrderModel.customer_id == customer_id)
        if statuses is not None:
            stmt = stmt.where(RentalOrderModel.status.in_([s.value for s in statuses]))
        stmt = stmt.order_by(RentalOrderModel.start_date.desc(), RentalOrderModel.order_no)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def count_by_customer_and_status(self, customer_id: UUID, status: OrderStatus) -> int:
        stmt = select(func.count(RentalOrderModel.id)).where(
            RentalOrderModel.customer_id == customer_id,
            RentalOrderModel.status == status.value,
        )
        return int(self.session.execute(stmt).scalar_one())

    def count_outstanding_overdue(self, customer_id: UUID) -> int:
        """Overdue orders of a customer whose units have not come back."""
        stmt = select(func.count(RentalOrderModel.id)).where(
            RentalOrderModel.customer_id == customer_id,
            RentalOrderModel.status == OrderStatus.OVERDUE.value,
            RentalOrderModel.actual_return_date.is_(None),
        )
        return int(self.session.execute(stmt).scalar_one())

    def find_active_past_due(self, as_of: date) -> list[RentalOrder]:
        stmt = (
            select(RentalOrderModel)
            .where(
                RentalOrderModel.status == OrderStatus.ACTIVE.value,
                RentalOrderModel.end_date < as_of,
            )
            .order_by(RentalOrderModel.end_date, RentalOrderModel.order_no)
        )
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def find_due_for_reminder(self, as_of: date, reminder_days: int) -> list[RentalOrder]:
        """Active orders ending within ``reminder_days`` of ``as_of``."""
        stmt = (
            select(RentalOrderModel)
            .where(
                RentalOrderModel.status == OrderStatus.ACTIVE.value,
                RentalOrderModel.end_date >= as_of,
                RentalOrderModel.end_date <= as_of + timedelta(days=reminder_days),
            )
            .order_by(RentalOrderModel.end_date, RentalOrderModel.order_no)
        )
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
