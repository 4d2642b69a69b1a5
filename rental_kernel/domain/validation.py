"""
ValidationGate (``rental_kernel.domain.validation``).

Responsibility
--------------
Pure pre-checks that gate every lifecycle operation: rental period bounds,
quantity bounds, product availability for rent, customer eligibility,
contact fields, amounts and status preconditions.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Today's date, the product terms, the
customer profile and the outstanding-overdue count are passed in; nothing
is read from the database or the clock here.

Failure modes
-------------
Every check raises ``RentalError`` with a validation kind (or
``INVALID_STATE_TRANSITION`` for status checks).  ``collect`` runs several
checks and raises a single ``VALIDATION_FAILED`` carrying every field
error when more than one fails.  Validation never mutates state.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from rental_kernel.domain.period import rental_days
from rental_kernel.domain.product import RentalProduct
from rental_kernel.exceptions import ErrorCategory, ErrorKind, RentalError
from rental_kernel.logging_config import get_logger

logger = get_logger("domain.validation")

EMAIL_MAX_LENGTH = 254
NAME_MAX_LENGTH = 100
ADDRESS_MAX_LENGTH = 255
MAX_AMOUNT = Decimal("999999999")
MAX_HORIZON_DAYS = 365 * 5

_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
_PHONE_CHARS_RE = re.compile(r"^[0-9\-()]+$")
_POSTAL_CODE_RE = re.compile(r"^\d{3}-\d{4}$")


@dataclass(frozen=True)
class ValidationRules:
    """Thresholds the gate enforces; resolved from settings once per call."""

    min_rental_days: int = 1
    max_rental_days: int = 90
    business_days: tuple[int, ...] = (1, 2, 3, 4, 5)
    holiday_rental: bool = True
    max_order_quantity: int | None = None
    max_overdue_orders: int = 0
    max_horizon_days: int = MAX_HORIZON_DAYS


@dataclass(frozen=True)
class CustomerProfile:
    """What the gate needs to know about the renting customer."""

    id: UUID
    is_active: bool = True
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    postal_code: str | None = None
    address: str | None = None


class ValidationGate:
    """
    Stateless validator bound to one ``ValidationRules`` snapshot.

    Usage::

        gate = ValidationGate(settings.validation_rules())
        gate.collect(
            lambda: gate.validate_product(product),
            lambda: gate.validate_rental_period(start, end, today, product),
            lambda: gate.validate_quantity(quantity, product),
        )
    """

    def __init__(self, rules: ValidationRules | None = None):
        self.rules = rules or ValidationRules()

    # ------------------------------------------------------------------
    # Period
    # ------------------------------------------------------------------

    def validate_rental_period(
        self,
        start_date: date,
        end_date: date,
        today: date,
        product: RentalProduct | None = None,
    ) -> int:
        """Check the period and return its length in billed days."""
        if start_date is None or end_date is None:
            raise RentalError(
                ErrorKind.REQUIRED,
                "Rental start and end dates are required",
                field="start_date" if start_date is None else "end_date",
            )
        if start_date >= end_date:
            raise RentalError(
                ErrorKind.INVALID_PERIOD,
                "Rental start date must be before the end date",
                field="start_date",
                start_date=start_date,
                end_date=end_date,
            )
        if start_date < today:
            raise RentalError(
                ErrorKind.INVALID_PERIOD,
                "Rental start date cannot be in the past",
                field="start_date",
                start_date=start_date,
                today=today,
            )
        if end_date > today + timedelta(days=self.rules.max_horizon_days):
            raise RentalError(
                ErrorKind.OUT_OF_RANGE,
                "Rental period is too far in the future",
                field="end_date",
                end_date=end_date,
                max_horizon_days=self.rules.max_horizon_days,
            )

        if product is not None and product.preparation_days > 0:
            earliest = today + timedelta(days=product.preparation_days)
            if start_date < earliest:
                raise RentalError(
                    ErrorKind.BUSINESS_RULE,
                    f"Product needs {product.preparation_days} preparation day(s)",
                    field="start_date",
                    earliest_start_date=earliest,
                    preparation_days=product.preparation_days,
                )

        days = rental_days(start_date, end_date)
        min_days = self.rules.min_rental_days
        max_days = self.rules.max_rental_days
        if product is not None:
            min_days = max(min_days, product.min_rental_days)
            if product.max_rental_days is not None:
                max_days = min(max_days, product.max_rental_days)
        if days < min_days:
            raise RentalError(
                ErrorKind.OUT_OF_RANGE,
                f"Minimum rental period is {min_days} day(s)",
                field="rental_days",
                days=days,
                min_days=min_days,
            )
        if days > max_days:
            raise RentalError(
                ErrorKind.OUT_OF_RANGE,
                f"Maximum rental period is {max_days} day(s)",
                field="rental_days",
                days=days,
                max_days=max_days,
            )

        if not self.rules.holiday_rental:
            for field_name, day in (("start_date", start_date), ("end_date", end_date)):
                if day.isoweekday() not in self.rules.business_days:
                    raise RentalError(
                        ErrorKind.BUSINESS_RULE,
                        f"{day.isoformat()} is not a business day",
                        field=field_name,
                        date=day,
                        business_days=list(self.rules.business_days),
                    )
        return days

    # ------------------------------------------------------------------
    # Quantity / product / amount
    # ------------------------------------------------------------------

    def validate_quantity(self, quantity: int, product: RentalProduct | None = None) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise RentalError(
                ErrorKind.INVALID_QUANTITY,
                "Quantity must be a positive whole number",
                field="quantity",
                value=quantity,
            )
        limit = self.rules.max_order_quantity
        if product is not None and product.stock_capacity is not None:
            limit = product.stock_capacity if limit is None else min(limit, product.stock_capacity)
        if limit is not None and quantity > limit:
            raise RentalError(
                ErrorKind.INVALID_QUANTITY,
                f"Quantity cannot exceed {limit}",
                field="quantity",
                value=quantity,
                max_quantity=limit,
            )

    def validate_product(self, product: RentalProduct) -> None:
        if not product.is_enabled:
            raise RentalError(
                ErrorKind.PRODUCT_UNAVAILABLE,
                f"Product {product.code} is not available for rent",
                field="product_id",
                product_id=product.id,
            )
        if not product.rate_card.has_any_rate:
            raise RentalError(
                ErrorKind.PRICING_UNAVAILABLE,
                f"Product {product.code} has no rental rates",
                field="product_id",
                product_id=product.id,
            )

    def validate_amount(self, amount: Decimal, field: str = "amount") -> None:
        if not isinstance(amount, Decimal):
            raise RentalError(
                ErrorKind.INVALID_FORMAT,
                f"{field} must be a Decimal",
                field=field,
                value=amount,
            )
        if amount < 0 or amount > MAX_AMOUNT:
            raise RentalError(
                ErrorKind.OUT_OF_RANGE,
                f"{field} must be between 0 and {MAX_AMOUNT}",
                field=field,
                value=amount,
            )

    # ------------------------------------------------------------------
    # Customer
    # ------------------------------------------------------------------

    def validate_customer(self, customer: CustomerProfile, outstanding_overdue: int = 0) -> None:
        if not customer.is_active:
            raise RentalError(
                ErrorKind.CUSTOMER_INELIGIBLE,
                "Customer account is not active",
                field="customer_id",
                customer_id=customer.id,
            )
        if outstanding_overdue > self.rules.max_overdue_orders:
            raise RentalError(
                ErrorKind.CUSTOMER_INELIGIBLE,
                "Customer has overdue rentals outstanding",
                field="customer_id",
                customer_id=customer.id,
                overdue_orders=outstanding_overdue,
                max_overdue_orders=self.rules.max_overdue_orders,
            )

    def validate_contact(
        self,
        *,
        email: str | None = None,
        phone: str | None = None,
        postal_code: str | None = None,
        name: str | None = None,
        address: str | None = None,
        required: Iterable[str] = (),
    ) -> None:
        """Validate whichever contact fields are given; ``required`` must be present."""
        values = {
            "email": email,
            "phone": phone,
            "postal_code": postal_code,
            "name": name,
            "address": address,
        }
        checks: list[Callable[[], None]] = []
        for key in required:
            if not values.get(key):
                checks.append(lambda key=key: _raise_required(key))
        if email:
            checks.append(lambda: validate_email(email))
        if phone:
            checks.append(lambda: validate_phone(phone))
        if postal_code:
            checks.append(lambda: validate_postal_code(postal_code))
        if name:
            checks.append(lambda: _validate_length("name", name, NAME_MAX_LENGTH))
        if address:
            checks.append(lambda: _validate_length("address", address, ADDRESS_MAX_LENGTH))
        self.collect(*checks)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def validate_status(
        self,
        current_status: str,
        allowed_statuses: Iterable[str],
        action: str,
        **payload,
    ) -> None:
        allowed = [str(getattr(s, "value", s)) for s in allowed_statuses]
        current = str(getattr(current_status, "value", current_status))
        if current not in allowed:
            raise RentalError(
                ErrorKind.INVALID_STATE_TRANSITION,
                f"Cannot {action} an order in status '{current}' "
                f"(allowed: {', '.join(allowed)})",
                action=action,
                current_status=current,
                allowed_statuses=allowed,
                **payload,
            )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def collect(self, *checks: Callable[[], object]) -> None:
        """
        Run every check; raise once with all validation failures.

        Non-validation errors propagate immediately.
        """
        failures: list[RentalError] = []
        for check in checks:
            try:
                check()
            except RentalError as exc:
                if exc.category is not ErrorCategory.VALIDATION:
                    raise
                failures.append(exc)

        if not failures:
            return
        if len(failures) == 1:
            raise failures[0]

        logger.info(
            "validation_failed",
            extra={"error_count": len(failures), "codes": [f.code for f in failures]},
        )
        raise RentalError(
            ErrorKind.VALIDATION_FAILED,
            "; ".join(str(f) for f in failures),
            errors=[
                {"code": f.code, "field": f.payload.get("field"), "message": str(f)}
                for f in failures
            ],
        )


def validate_email(email: str) -> None:
    if len(email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.match(email):
        raise RentalError(
            ErrorKind.INVALID_FORMAT,
            "Email address is not valid",
            field="email",
            value=email,
        )


def validate_phone(phone: str) -> None:
    digits = sum(ch.isdigit() for ch in phone)
    if not _PHONE_CHARS_RE.match(phone) or not 10 <= digits <= 11:
        raise RentalError(
            ErrorKind.INVALID_FORMAT,
            "Phone number must have 10 or 11 digits",
            field="phone",
            value=phone,
        )


def validate_postal_code(postal_code: str) -> None:
    if not _POSTAL_CODE_RE.match(postal_code):
        raise RentalError(
            ErrorKind.INVALID_FORMAT,
            "Postal code must look like 123-4567",
            field="postal_code",
            value=postal_code,
        )


def _validate_length(field: str, value: str, max_length: int) -> None:
    if len(value) > max_length:
        raise RentalError(
            ErrorKind.OUT_OF_RANGE,
            f"{field} must be at most {max_length} characters",
            field=field,
            length=len(value),
            max_length=max_length,
        )


def _raise_required(field: str) -> None:
    raise RentalError(ErrorKind.REQUIRED, f"{field} is required", field=field)
