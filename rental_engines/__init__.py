"""
Module: rental_engines
Responsibility:
    Re-exports the pure pricing engine.  Higher layers (rental_services)
    import from here.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Day counts,
      amounts and rates are passed in.
    - Decimal-only arithmetic with explicit rounding at each step.
"""

from rental_engines.pricing import (
    DeliveryMethod,
    PriceQuote,
    PricingRates,
    PricingStrategy,
    average_daily_amount,
    calculate_base_price,
    calculate_deposit,
    calculate_delivery_fee,
    calculate_discount,
    calculate_early_return_discount,
    calculate_extension_fee,
    calculate_insurance,
    calculate_lowest_tier_price,
    calculate_overdue_fee,
    calculate_replacement_fee,
    calculate_tax,
    daily_equivalent_rate,
    quote_rental,
    term_discount_rate,
    unit_price,
)
from rental_engines.tracer import traced_engine

__all__ = [
    "DeliveryMethod",
    "PriceQuote",
    "PricingRates",
    "PricingStrategy",
    "average_daily_amount",
    "calculate_base_price",
    "calculate_deposit",
    "calculate_delivery_fee",
    "calculate_discount",
    "calculate_early_return_discount",
    "calculate_extension_fee",
    "calculate_insurance",
    "calculate_lowest_tier_price",
    "calculate_overdue_fee",
    "calculate_replacement_fee",
    "calculate_tax",
    "daily_equivalent_rate",
    "quote_rental",
    "term_discount_rate",
    "unit_price",
    "traced_engine",
]
