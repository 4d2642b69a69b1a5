"""
Module: rental_engines.pricing
Responsibility:
    Pure pricing functions for rentals: base price from a rate card,
    term and product discounts, insurance, tax, deposit, and the fees that
    arise later in an order's life (overdue, extension, early return,
    product replacement, delivery).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are ``Decimal``
    amounts, day counts, a ``RateCard`` / ``RentalProduct`` and a
    ``PricingRates`` snapshot.  Outputs are ``Decimal`` or ``PriceQuote``.

Invariants enforced:
    - Decimal only; floats are rejected.
    - Every multiplication and division is followed by ``round_money``
      (2 places, ROUND_HALF_UP), so each intermediate amount is what an
      invoice line would show.
    - Exactly one rate tier prices a rental under the tiered strategy.

Failure modes:
    - ``RentalError(PRICING_UNAVAILABLE)`` when no rate applies.
    - ``RentalError(INVALID_QUANTITY)`` / ``OUT_OF_RANGE`` on non-positive
      days or quantity.

Audit relevance:
    Every public calculation is traced via ``@traced_engine`` with a
    fingerprint of its monetary inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from rental_engines.tracer import traced_engine
from rental_kernel.db.types import ZERO, round_money, to_decimal
from rental_kernel.domain.order import OrderFees
from rental_kernel.domain.product import RateCard, RentalProduct
from rental_kernel.exceptions import ErrorKind, RentalError
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")

ENGINE_VERSION = "1.0"

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
LONG_TERM_DAYS = 30
MEDIUM_TERM_DAYS = 14


class PricingStrategy(str, Enum):
    TIERED = "tiered"            # largest applicable tier plus daily remainder
    LOWEST_TIER = "lowest_tier"  # cheapest of three whole-tier totals


class DeliveryMethod(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    MAIL = "mail"
    PICKUP = "pickup"


@dataclass(frozen=True)
class PricingRates:
    """Rates the engine needs, resolved from settings once per operation."""

    long_term_discount_rate: Decimal = Decimal("0.10")
    medium_term_discount_rate: Decimal = Decimal("0.05")
    tax_rate: Decimal = Decimal("0.10")
    overdue_fee_rate: Decimal = Decimal("0.10")
    deposit_required: bool = False
    deposit_rate: Decimal = Decimal("0.30")
    default_extension_rate: Decimal = Decimal("1.0")
    default_early_return_rate: Decimal = Decimal("0.10")
    pricing_strategy: PricingStrategy = PricingStrategy.TIERED
    default_delivery_fee: Decimal = Decimal("500")
    free_delivery_threshold: Decimal = Decimal("5000")


@dataclass(frozen=True)
class PriceQuote:
    """Full price breakdown for a new rental."""

    days: int
    quantity: int
    unit_price: Decimal
    base_amount: Decimal
    term_discount: Decimal
    product_discount: Decimal
    discount_amount: Decimal
    rental_fee: Decimal
    insurance_fee: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    deposit_amount: Decimal

    @property
    def subtotal(self) -> Decimal:
        """Discounted base plus insurance, before tax."""
        return self.taxable_amount

    def to_fees(self) -> OrderFees:
        return OrderFees(
            rental_fee=self.rental_fee,
            discount_amount=self.discount_amount,
            insurance_fee=self.insurance_fee,
            tax_amount=self.tax_amount,
            delivery_fee=self.delivery_fee,
            deposit_fee=self.deposit_amount,
        )


def _positive_days(days: int, field: str = "days") -> int:
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise RentalError(
            ErrorKind.OUT_OF_RANGE,
            f"{field} must be a positive whole number",
            field=field,
            value=days,
        )
    return days


def _positive_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise RentalError(
            ErrorKind.INVALID_QUANTITY,
            "quantity must be a positive whole number",
            field="quantity",
            value=quantity,
        )
    return quantity


# =============================================================================
# Base price
# =============================================================================


@traced_engine("base_price", ENGINE_VERSION, fingerprint_fields=("rate_card", "days"))
def calculate_base_price(rate_card: RateCard, days: int) -> Decimal:
    """
    Per-unit price of ``days`` under the tiered rule.

    Monthly applies from 30 days, weekly from 7, otherwise daily.  Whole
    months (weeks) are billed at the tier rate and the remaining days at
    the daily rate, or at nothing when there is no daily rate.

    Raises:
        RentalError(PRICING_UNAVAILABLE): no tier covers ``days``.
    """
    _positive_days(days)
    daily = rate_card.daily

    if rate_card.monthly is not None and days >= DAYS_PER_MONTH:
        months, remainder = divmod(days, DAYS_PER_MONTH)
        return _tier_total(rate_card.monthly, months, daily, remainder)

    if rate_card.weekly is not None and days >= DAYS_PER_WEEK:
        weeks, remainder = divmod(days, DAYS_PER_WEEK)
        return _tier_total(rate_card.weekly, weeks, daily, remainder)

    if daily is not None:
        return round_money(daily * days)

    raise RentalError(
        ErrorKind.PRICING_UNAVAILABLE,
        f"No rate applies to a {days}-day rental",
        days=days,
    )


def _tier_total(tier_rate: Decimal, units: int, daily: Decimal | None, remainder: int) -> Decimal:
    total = round_money(tier_rate * units)
    if remainder and daily is not None:
        total = round_money(total + round_money(daily * remainder))
    return total


@traced_engine("lowest_tier_price", ENGINE_VERSION, fingerprint_fields=("rate_card", "days"))
def calculate_lowest_tier_price(rate_card: RateCard, days: int) -> Decimal:
    """
    Per-unit price as the cheapest whole-tier total.

    Daily x days, weekly x ceil(days/7), monthly x ceil(days/30); the
    minimum of whichever rates exist.
    """
    _positive_days(days)
    candidates: list[Decimal] = []
    if rate_card.daily is not None:
        candidates.append(round_money(rate_card.daily * days))
    if rate_card.weekly is not None:
        candidates.append(round_money(rate_card.weekly * -(-days // DAYS_PER_WEEK)))
    if rate_card.monthly is not None:
        candidates.append(round_money(rate_card.monthly * -(-days // DAYS_PER_MONTH)))
    if not candidates:
        raise RentalError(
            ErrorKind.PRICING_UNAVAILABLE,
            f"No rate applies to a {days}-day rental",
            days=days,
        )
    return min(candidates)


def unit_price(rate_card: RateCard, days: int, strategy: PricingStrategy = PricingStrategy.TIERED) -> Decimal:
    if strategy is PricingStrategy.LOWEST_TIER:
        return calculate_lowest_tier_price(rate_card, days)
    return calculate_base_price(rate_card, days)


# =============================================================================
# Discounts, insurance, tax, deposit
# =============================================================================


def term_discount_rate(days: int, rates: PricingRates) -> Decimal:
    if days >= LONG_TERM_DAYS:
        return rates.long_term_discount_rate
    if days >= MEDIUM_TERM_DAYS:
        return rates.medium_term_discount_rate
    return ZERO


@traced_engine("discount", ENGINE_VERSION, fingerprint_fields=("base_amount", "days", "product_discount_rate"))
def calculate_discount(
    base_amount: Decimal,
    days: int,
    rates: PricingRates,
    product_discount_rate: Decimal = ZERO,
) -> tuple[Decimal, Decimal]:
    """
    Term discount and product discount on ``base_amount``.

    The two are computed independently on the same base and added, never
    compounded.  Returns ``(term_discount, product_discount)``.
    """
    base_amount = to_decimal(base_amount)
    term = round_money(base_amount * term_discount_rate(days, rates))
    product = round_money(base_amount * to_decimal(product_discount_rate or ZERO))
    return term, product


def calculate_insurance(insurance_fee: Decimal, quantity: int) -> Decimal:
    """Flat per-unit insurance fee times quantity."""
    _positive_quantity(quantity)
    return round_money(to_decimal(insurance_fee or ZERO) * quantity)


def calculate_tax(taxable_amount: Decimal, tax_rate: Decimal) -> Decimal:
    return round_money(to_decimal(taxable_amount) * to_decimal(tax_rate))


@traced_engine("deposit", ENGINE_VERSION, fingerprint_fields=("quantity",))
def calculate_deposit(product: RentalProduct, quantity: int, rates: PricingRates) -> Decimal:
    """
    Refundable deposit for ``quantity`` units.

    Zero unless deposits are required.  A product's fixed per-unit deposit
    wins; otherwise ``deposit_rate x replacement_value x quantity``; zero
    when the product has neither.
    """
    _positive_quantity(quantity)
    if not rates.deposit_required:
        return ZERO
    if product.deposit_amount is not None and product.deposit_amount > 0:
        return round_money(product.deposit_amount * quantity)
    if product.replacement_value is None:
        return ZERO
    per_unit = round_money(rates.deposit_rate * product.replacement_value)
    return round_money(per_unit * quantity)


@traced_engine("delivery_fee", ENGINE_VERSION, fingerprint_fields=("order_amount", "method"))
def calculate_delivery_fee(
    order_amount: Decimal,
    method: DeliveryMethod | str | None,
    rates: PricingRates,
) -> Decimal:
    """Delivery charge; free at or above the threshold or for pickup."""
    if method is None:
        return ZERO
    try:
        method = DeliveryMethod(method)
    except ValueError:
        raise RentalError(
            ErrorKind.INVALID_FORMAT,
            f"Unknown delivery method '{method}'",
            field="delivery_method",
            value=str(method),
            allowed=[m.value for m in DeliveryMethod],
        ) from None
    if method is DeliveryMethod.PICKUP:
        return ZERO
    if to_decimal(order_amount) >= rates.free_delivery_threshold:
        return ZERO
    fee = rates.default_delivery_fee
    if method is DeliveryMethod.EXPRESS:
        return round_money(fee * Decimal("1.5"))
    if method is DeliveryMethod.MAIL:
        return round_money(fee / Decimal(2))
    return round_money(fee)


# =============================================================================
# Quote
# =============================================================================


@traced_engine("rental_quote", ENGINE_VERSION, fingerprint_fields=("days", "quantity", "delivery_method"))
def quote_rental(
    product: RentalProduct,
    days: int,
    quantity: int,
    rates: PricingRates,
    delivery_method: DeliveryMethod | str | None = None,
) -> PriceQuote:
    """
    Price a new rental.

    base = unit price x quantity
    discount = term discount + product discount (both on base)
    rental_fee = base - discount
    taxable = rental_fee + insurance
    total = taxable + tax (+ delivery, judged on taxable + tax)
    """
    _positive_days(days)
    _positive_quantity(quantity)

    per_unit = unit_price(product.rate_card, days, rates.pricing_strategy)
    base_amount = round_money(per_unit * quantity)

    term, product_disc = calculate_discount(
        base_amount, days, rates, product_discount_rate=product.discount_rate,
    )
    discount = min(base_amount, round_money(term + product_disc))
    rental_fee = round_money(base_amount - discount)

    insurance = calculate_insurance(product.insurance_fee, quantity)
    taxable = round_money(rental_fee + insurance)
    tax = calculate_tax(taxable, rates.tax_rate)
    before_delivery = round_money(taxable + tax)
    delivery = calculate_delivery_fee(before_delivery, delivery_method, rates)
    total = round_money(before_delivery + delivery)

    deposit = calculate_deposit(product, quantity, rates)

    quote = PriceQuote(
        days=days,
        quantity=quantity,
        unit_price=per_unit,
        base_amount=base_amount,
        term_discount=term,
        product_discount=product_disc,
        discount_amount=discount,
        rental_fee=rental_fee,
        insurance_fee=insurance,
        taxable_amount=taxable,
        tax_amount=tax,
        delivery_fee=delivery,
        total_amount=total,
        deposit_amount=deposit,
    )
    logger.debug(
        "rental_quoted",
        extra={
            "product_code": product.code,
            "days": days,
            "quantity": quantity,
            "base_amount": base_amount,
            "discount_amount": discount,
            "total_amount": total,
        },
    )
    return quote


# =============================================================================
# Fees after creation
# =============================================================================


@traced_engine("overdue_fee", ENGINE_VERSION, fingerprint_fields=("total_amount", "overdue_days", "fee_rate"))
def calculate_overdue_fee(total_amount: Decimal, overdue_days: int, fee_rate: Decimal) -> Decimal:
    """
    ``fee_rate x total_amount`` per day late.

    The rate applies to the whole order total, not to a daily rate.
    """
    if overdue_days <= 0:
        return ZERO
    per_day = round_money(to_decimal(total_amount) * to_decimal(fee_rate))
    return round_money(per_day * overdue_days)


def average_daily_amount(total_amount: Decimal, days: int) -> Decimal:
    _positive_days(days)
    return round_money(to_decimal(total_amount) / Decimal(days))


@traced_engine("extension_fee", ENGINE_VERSION,
               fingerprint_fields=("original_total", "original_days", "extension_days", "extension_rate"))
def calculate_extension_fee(
    original_total: Decimal,
    original_days: int,
    extension_days: int,
    extension_rate: Decimal,
) -> Decimal:
    """``(original_total / original_days) x extension_days x extension_rate``."""
    _positive_days(extension_days, "extension_days")
    daily = average_daily_amount(original_total, original_days)
    return round_money(round_money(daily * extension_days) * to_decimal(extension_rate))


@traced_engine("early_return_discount", ENGINE_VERSION,
               fingerprint_fields=("original_total", "original_days", "saved_days", "discount_rate"))
def calculate_early_return_discount(
    original_total: Decimal,
    original_days: int,
    saved_days: int,
    discount_rate: Decimal,
) -> Decimal:
    """``(original_total / original_days) x saved_days x discount_rate``."""
    if saved_days <= 0:
        return ZERO
    daily = average_daily_amount(original_total, original_days)
    return round_money(round_money(daily * saved_days) * to_decimal(discount_rate))


def daily_equivalent_rate(rate_card: RateCard) -> Decimal:
    """
    Lowest per-day rate on the card.

    Weekly is divided by 7 and monthly by 30 before comparing.
    """
    candidates: list[Decimal] = []
    if rate_card.daily is not None:
        candidates.append(round_money(rate_card.daily))
    if rate_card.weekly is not None:
        candidates.append(round_money(rate_card.weekly / Decimal(DAYS_PER_WEEK)))
    if rate_card.monthly is not None:
        candidates.append(round_money(rate_card.monthly / Decimal(DAYS_PER_MONTH)))
    if not candidates:
        raise RentalError(ErrorKind.PRICING_UNAVAILABLE, "Rate card has no rates")
    return min(candidates)


@traced_engine("replacement_fee", ENGINE_VERSION, fingerprint_fields=("remaining_days",))
def calculate_replacement_fee(
    source: RentalProduct,
    target: RentalProduct,
    remaining_days: int,
) -> Decimal:
    """
    Charge for swapping a rented product for another mid-rental.

    Upgrades pay the daily-equivalent difference for the remaining days
    plus the target's flat replacement fee.  Downgrades and same-price
    swaps cost nothing.
    """
    if remaining_days <= 0:
        return ZERO
    source_daily = daily_equivalent_rate(source.rate_card)
    target_daily = daily_equivalent_rate(target.rate_card)
    if target_daily <= source_daily:
        return ZERO
    difference = round_money((target_daily - source_daily) * remaining_days)
    return round_money(difference + (target.replacement_fee or ZERO))
