"""
Module: rental_kernel.models.order
Responsibility: ORM persistence for rental orders.

Invariants enforced:
    - ``start_date < end_date`` and ``quantity >= 1`` (CHECK constraints).
    - Every fee column is Decimal and non-negative.
    - ``total_amount`` is written only by ``recompute_total()``.
    - ``version`` is the optimistic compare-and-swap column: a status write
      based on a stale read fails with StaleDataError.
    - Rows are never deleted; cancellation and completion are statuses.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.db.types import ZERO
from rental_kernel.domain.order import FEE_FIELDS, OrderFees, RentalOrder, compute_total_amount
from rental_kernel.domain.order_status import OrderStatus
from rental_kernel.domain.period import RentalPeriod


class RentalOrderModel(TrackedBase):
    """ORM model for a rental order."""

    __tablename__ = "rental_orders"

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_rental_order_period"),
        CheckConstraint("quantity >= 1", name="ck_rental_order_quantity"),
        Index("idx_rental_order_no", "order_no", unique=True),
        Index("idx_rental_order_product_period", "product_id", "start_date", "end_date"),
        Index("idx_rental_order_customer_status", "customer_id", "status"),
    )

    order_no: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_return_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OrderStatus.PENDING.value)

    rental_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    discount_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    insurance_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    delivery_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    deposit_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    overdue_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    extension_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    early_return_discount: Mapped[Decimal] = mapped_column(default=ZERO)
    damage_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    cleaning_fee: Mapped[Decimal] = mapped_column(default=ZERO)
    total_amount: Mapped[Decimal] = mapped_column(default=ZERO)

    return_condition: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    returned_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def period(self) -> RentalPeriod:
        return RentalPeriod(self.start_date, self.end_date)

    def apply_fees(self, fees: OrderFees) -> None:
        for name in (*FEE_FIELDS, "discount_amount", "deposit_fee", "early_return_discount"):
            setattr(self, name, getattr(fees, name))
        self.recompute_total()

    def recompute_total(self) -> Decimal:
        self.total_amount = compute_total_amount(self)
        return self.total_amount

    def fees(self) -> OrderFees:
        return OrderFees(
            rental_fee=self.rental_fee,
            discount_amount=self.discount_amount,
            insurance_fee=self.insurance_fee,
            tax_amount=self.tax_amount,
            delivery_fee=self.delivery_fee,
            deposit_fee=self.deposit_fee,
            overdue_fee=self.overdue_fee,
            extension_fee=self.extension_fee,
            early_return_discount=self.early_return_discount,
            damage_fee=self.damage_fee,
            cleaning_fee=self.cleaning_fee,
        )

    def to_dto(self) -> RentalOrder:
        return RentalOrder(
            id=self.id,
            order_no=self.order_no,
            customer_id=self.customer_id,
            product_id=self.product_id,
            quantity=self.quantity,
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.order_status,
            fees=self.fees(),
            total_amount=self.total_amount,
            actual_return_date=self.actual_return_date,
            return_condition=self.return_condition,
            cancel_reason=self.cancel_reason,
            notes=self.notes,
            created_at=self.created_at,
            approved_at=self.approved_at,
            started_at=self.started_at,
            returned_at=self.returned_at,
            cancelled_at=self.cancelled_at,
        )

    def __repr__(self) -> str:
        return f"<RentalOrderModel {self.order_no} {self.status} v{self.version}>"
