"""
Typed rental settings (``rental_config.schema``).

Responsibility
--------------
``RentalSettings`` is the frozen snapshot of every tunable the engine
reads.  A snapshot is resolved from a ``ConfigProvider`` once at the start
of an operation, so one transaction never sees two different tax rates.

Invariants enforced
-------------------
* Rates are ``Decimal`` and non-negative; they are read through ``str`` so
  a YAML ``0.1`` becomes ``Decimal("0.1")`` exactly.
* ``1 <= min_rental_days <= max_rental_days``.
* ``business_days`` holds ISO weekdays (1 = Monday ... 7 = Sunday).
* ``pricing_strategy`` names a ``PricingStrategy``.

Violations raise ``RentalError(CONFIGURATION_ERROR)``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any

from rental_config.provider import ConfigProvider, MappingConfigProvider
from rental_engines.pricing import PricingRates, PricingStrategy
from rental_kernel.domain.validation import ValidationRules
from rental_kernel.exceptions import ErrorKind, RentalError

_DECIMAL_KEYS = (
    "overdue_fee_rate",
    "deposit_rate",
    "tax_rate",
    "long_term_discount_rate",
    "medium_term_discount_rate",
    "default_extension_rate",
    "default_early_return_rate",
    "default_delivery_fee",
    "free_delivery_threshold",
)


@dataclass(frozen=True)
class RentalSettings:
    max_rental_days: int = 90
    min_rental_days: int = 1
    reminder_days: int = 3
    overdue_fee_rate: Decimal = Decimal("0.10")
    deposit_required: bool = False
    deposit_rate: Decimal = Decimal("0.30")
    tax_rate: Decimal = Decimal("0.10")
    long_term_discount_rate: Decimal = Decimal("0.10")
    medium_term_discount_rate: Decimal = Decimal("0.05")
    default_extension_rate: Decimal = Decimal("1.0")
    default_early_return_rate: Decimal = Decimal("0.10")
    early_return_discount_enabled: bool = False
    business_days: tuple[int, ...] = (1, 2, 3, 4, 5)
    holiday_rental: bool = True
    auto_approval: bool = False
    max_order_quantity: int | None = None
    max_overdue_orders: int = 0
    order_number_prefix: str = "R"
    pricing_strategy: PricingStrategy = PricingStrategy.TIERED
    default_delivery_fee: Decimal = Decimal("500")
    free_delivery_threshold: Decimal = Decimal("5000")
    low_stock_threshold: int = 5
    admin_email: str | None = None

    def __post_init__(self) -> None:
        if self.min_rental_days < 1:
            raise _invalid("min_rental_days", self.min_rental_days, "at least 1")
        if self.max_rental_days < self.min_rental_days:
            raise _invalid("max_rental_days", self.max_rental_days, "at least min_rental_days")
        for key in ("reminder_days", "max_overdue_orders", "low_stock_threshold"):
            if getattr(self, key) < 0:
                raise _invalid(key, getattr(self, key), "non-negative")
        if self.max_order_quantity is not None and self.max_order_quantity < 1:
            raise _invalid("max_order_quantity", self.max_order_quantity, "at least 1")
        for key in _DECIMAL_KEYS:
            if getattr(self, key) < 0:
                raise _invalid(key, getattr(self, key), "non-negative")
        if any(day not in range(1, 8) for day in self.business_days):
            raise _invalid("business_days", list(self.business_days), "ISO weekdays 1-7")
        if not self.order_number_prefix or len(self.order_number_prefix) > 8:
            raise _invalid("order_number_prefix", self.order_number_prefix, "1-8 characters")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def with_defaults(cls) -> RentalSettings:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RentalSettings:
        return cls.from_provider(MappingConfigProvider(data))

    @classmethod
    def from_provider(cls, provider: ConfigProvider) -> RentalSettings:
        """Resolve every key through the provider, falling back to defaults."""
        d = cls()
        values: dict[str, Any] = {
            "max_rental_days": provider.get_int("max_rental_days", d.max_rental_days),
            "min_rental_days": provider.get_int("min_rental_days", d.min_rental_days),
            "reminder_days": provider.get_int("reminder_days", d.reminder_days),
            "deposit_required": provider.get_boolean("deposit_required", d.deposit_required),
            "early_return_discount_enabled": provider.get_boolean(
                "early_return_discount_enabled", d.early_return_discount_enabled,
            ),
            "business_days": tuple(
                _as_int("business_days", v)
                for v in provider.get_array("business_days", list(d.business_days))
            ),
            "holiday_rental": provider.get_boolean("holiday_rental", d.holiday_rental),
            "auto_approval": provider.get_boolean("auto_approval", d.auto_approval),
            "max_order_quantity": provider.get_int("max_order_quantity", d.max_order_quantity),
            "max_overdue_orders": provider.get_int("max_overdue_orders", d.max_overdue_orders),
            "order_number_prefix": str(provider.get("order_number_prefix", d.order_number_prefix)),
            "pricing_strategy": _as_strategy(provider.get("pricing_strategy", d.pricing_strategy)),
            "low_stock_threshold": provider.get_int("low_stock_threshold", d.low_stock_threshold),
            "admin_email": provider.get("admin_email", d.admin_email),
        }
        for key in _DECIMAL_KEYS:
            values[key] = _as_decimal(key, provider.get(key, getattr(d, key)))
        return cls(**values)

    # ------------------------------------------------------------------
    # Views for lower layers
    # ------------------------------------------------------------------

    def validation_rules(self) -> ValidationRules:
        return ValidationRules(
            min_rental_days=self.min_rental_days,
            max_rental_days=self.max_rental_days,
            business_days=self.business_days,
            holiday_rental=self.holiday_rental,
            max_order_quantity=self.max_order_quantity,
            max_overdue_orders=self.max_overdue_orders,
        )

    def pricing_rates(self) -> PricingRates:
        return PricingRates(
            long_term_discount_rate=self.long_term_discount_rate,
            medium_term_discount_rate=self.medium_term_discount_rate,
            tax_rate=self.tax_rate,
            overdue_fee_rate=self.overdue_fee_rate,
            deposit_required=self.deposit_required,
            deposit_rate=self.deposit_rate,
            default_extension_rate=self.default_extension_rate,
            default_early_return_rate=self.default_early_return_rate,
            pricing_strategy=self.pricing_strategy,
            default_delivery_fee=self.default_delivery_fee,
            free_delivery_threshold=self.free_delivery_threshold,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain, JSON-friendly form (used for the config checksum)."""
        data = asdict(self)
        for f in fields(self):
            value = data[f.name]
            if isinstance(value, Decimal):
                data[f.name] = str(value)
            elif isinstance(value, PricingStrategy):
                data[f.name] = value.value
            elif isinstance(value, tuple):
                data[f.name] = list(value)
        return data


def _invalid(key: str, value: Any, expected: str) -> RentalError:
    return RentalError(
        ErrorKind.CONFIGURATION_ERROR,
        f"Setting '{key}' must be {expected}, got {value!r}",
        key=key,
        value=value,
        expected=expected,
    )


def _as_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise _invalid(key, value, "a number")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise _invalid(key, value, "a number") from None


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise _invalid(key, value, "an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _invalid(key, value, "an integer") from None


def _as_strategy(value: Any) -> PricingStrategy:
    try:
        return PricingStrategy(value)
    except ValueError:
        raise _invalid(
            "pricing_strategy", value, " or ".join(s.value for s in PricingStrategy),
        ) from None
