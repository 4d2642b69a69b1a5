"""
Rental order value objects.

``RentalOrder`` is the frozen read model handed to callers and to the
notification hook; ``OrderFees`` is the fee breakdown whose total is the
one definition of ``total_amount``.
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from rental_kernel.db.types import ZERO, round_money
from rental_kernel.domain.order_status import OrderStatus
from rental_kernel.exceptions import ErrorKind, RentalError

FEE_FIELDS: tuple[str, ...] = (
    "rental_fee",
    "insurance_fee",
    "tax_amount",
    "delivery_fee",
    "overdue_fee",
    "extension_fee",
    "damage_fee",
    "cleaning_fee",
)
CREDIT_FIELDS: tuple[str, ...] = ("early_return_discount",)


@dataclass(frozen=True)
class OrderFees:
    """Every fee line of an order.  ``deposit_fee`` is a hold, not revenue."""

    rental_fee: Decimal = ZERO
    discount_amount: Decimal = ZERO
    insurance_fee: Decimal = ZERO
    tax_amount: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    deposit_fee: Decimal = ZERO
    overdue_fee: Decimal = ZERO
    extension_fee: Decimal = ZERO
    early_return_discount: Decimal = ZERO
    damage_fee: Decimal = ZERO
    cleaning_fee: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, Decimal) or value < 0:
                raise RentalError(
                    ErrorKind.OUT_OF_RANGE,
                    f"{f.name} must be a non-negative Decimal",
                    field=f.name,
                    value=value,
                )

    @property
    def total_amount(self) -> Decimal:
        return compute_total_amount(self)

    @property
    def amount_due(self) -> Decimal:
        return round_money(self.total_amount + self.deposit_fee)


def compute_total_amount(fees) -> Decimal:
    """
    Sum of the currently applicable fee fields, floored at zero.

    Works on anything exposing the fee attributes (``OrderFees`` or the
    order ORM row), so the stored total is always derived, never edited.
    """
    charges = sum((getattr(fees, name) or ZERO for name in FEE_FIELDS), ZERO)
    credits = sum((getattr(fees, name) or ZERO for name in CREDIT_FIELDS), ZERO)
    return round_money(max(ZERO, charges - credits))


@dataclass(frozen=True)
class RentalOrder:
    id: UUID
    order_no: str
    customer_id: UUID
    product_id: UUID
    quantity: int
    start_date: date
    end_date: date
    status: OrderStatus
    fees: OrderFees
    total_amount: Decimal
    actual_return_date: date | None = None
    return_condition: str | None = None
    cancel_reason: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None
    started_at: datetime | None = None
    returned_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def amount_due(self) -> Decimal:
        return round_money(self.total_amount + self.fees.deposit_fee)
