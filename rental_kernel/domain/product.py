"""
Rental product terms (``rental_kernel.domain.product``).

Frozen value objects describing what a product costs to rent and under
which limits.  ``RentalProductModel.to_dto()`` produces these; the pricing
engine and validation gate consume them and never touch the ORM.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from uuid import UUID

from rental_kernel.exceptions import ErrorKind, RentalError


def _coerce_amount(obj: object, name: str, field_name: str) -> None:
    """Normalize one money attribute of a frozen instance to a non-negative Decimal."""
    value = getattr(obj, name)
    if value is None:
        return
    if isinstance(value, (float, bool)):
        raise RentalError(
            ErrorKind.INVALID_PRODUCT,
            f"{field_name} must be a Decimal, got {type(value).__name__}",
            field=field_name,
            value=value,
        )
    if not isinstance(value, Decimal):
        converted = None
        if isinstance(value, (int, str)):
            try:
                converted = Decimal(str(value))
            except InvalidOperation:
                converted = None
        if converted is None or not converted.is_finite():
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                f"{field_name} is not a valid amount",
                field=field_name,
                value=str(value),
            )
        object.__setattr__(obj, name, converted)
        value = converted
    if value < 0:
        raise RentalError(
            ErrorKind.INVALID_PRODUCT,
            f"{field_name} cannot be negative",
            field=field_name,
            value=value,
        )


@dataclass(frozen=True)
class RateCard:
    """Daily, weekly and monthly rates; any of them may be absent."""

    daily: Decimal | None = None
    weekly: Decimal | None = None
    monthly: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("daily", "weekly", "monthly"):
            _coerce_amount(self, name, f"{name}_rate")

    @property
    def has_any_rate(self) -> bool:
        return any(r is not None for r in (self.daily, self.weekly, self.monthly))


@dataclass(frozen=True)
class RentalProduct:
    """
    A product offered for rent.

    Contract: ``min_rental_days >= 1``; ``max_rental_days >= min_rental_days``
    when set; every rate and amount ``>= 0``.  ``stock_capacity`` caps the
    units one order may take; None leaves only the global per-order cap.
    """

    id: UUID
    code: str
    name: str
    rate_card: RateCard = field(default_factory=RateCard)
    is_enabled: bool = True
    min_rental_days: int = 1
    max_rental_days: int | None = None
    deposit_amount: Decimal | None = None
    replacement_value: Decimal | None = None
    insurance_fee: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")
    extension_rate: Decimal | None = None
    early_return_rate: Decimal | None = None
    replacement_fee: Decimal = Decimal("0")
    preparation_days: int = 0
    stock_capacity: int | None = None

    def __post_init__(self) -> None:
        if self.min_rental_days < 1:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                "min_rental_days must be at least 1",
                field="min_rental_days",
                value=self.min_rental_days,
            )
        if self.max_rental_days is not None and self.max_rental_days < self.min_rental_days:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                "max_rental_days must not be below min_rental_days",
                field="max_rental_days",
                value=self.max_rental_days,
                min_rental_days=self.min_rental_days,
            )
        for name in (
            "deposit_amount",
            "replacement_value",
            "insurance_fee",
            "discount_rate",
            "extension_rate",
            "early_return_rate",
            "replacement_fee",
        ):
            _coerce_amount(self, name, name)
        if self.preparation_days < 0:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                "preparation_days cannot be negative",
                field="preparation_days",
                value=self.preparation_days,
            )
        if self.stock_capacity is not None and self.stock_capacity < 0:
            raise RentalError(
                ErrorKind.INVALID_PRODUCT,
                "stock_capacity cannot be negative",
                field="stock_capacity",
                value=self.stock_capacity,
            )
