"""
Tests for the rental pricing engine.

Amounts are worked by hand; every intermediate step is rounded to two
places, half up.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from rental_engines.pricing import (
    DeliveryMethod,
    PricingRates,
    PricingStrategy,
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
    unit_price,
)
from rental_kernel.domain.product import RateCard, RentalProduct
from rental_kernel.exceptions import ErrorKind, RentalError

D = Decimal


def _product(daily="1000", weekly=None, monthly=None, **overrides) -> RentalProduct:
    card = RateCard(
        daily=D(daily) if daily is not None else None,
        weekly=D(weekly) if weekly is not None else None,
        monthly=D(monthly) if monthly is not None else None,
    )
    fields = {"id": uuid4(), "code": "P", "name": "Product", "rate_card": card}
    fields.update(overrides)
    return RentalProduct(**fields)


class TestBasePrice:

    def test_daily_only(self):
        assert calculate_base_price(RateCard(daily=D("1000")), 10) == D("10000.00")

    def test_weekly_tier_with_daily_remainder(self):
        card = RateCard(daily=D("1000"), weekly=D("6000"))
        assert calculate_base_price(card, 10) == D("9000.00")

    def test_monthly_tier_with_daily_remainder(self):
        card = RateCard(daily=D("1000"), weekly=D("6000"), monthly=D("20000"))
        assert calculate_base_price(card, 35) == D("25000.00")

    def test_remainder_free_without_daily_rate(self):
        card = RateCard(weekly=D("6000"))
        assert calculate_base_price(card, 10) == D("6000.00")

    def test_short_rental_without_daily_rate(self):
        with pytest.raises(RentalError) as exc_info:
            calculate_base_price(RateCard(weekly=D("6000")), 3)
        assert exc_info.value.kind is ErrorKind.PRICING_UNAVAILABLE

    @pytest.mark.parametrize("days", [0, -1])
    def test_days_must_be_positive(self, days):
        with pytest.raises(RentalError) as exc_info:
            calculate_base_price(RateCard(daily=D("1000")), days)
        assert exc_info.value.kind is ErrorKind.OUT_OF_RANGE


class TestLowestTier:

    def test_daily_cheaper_than_rounded_up_weeks(self):
        card = RateCard(daily=D("1000"), weekly=D("6000"))
        assert calculate_lowest_tier_price(card, 10) == D("10000.00")

    def test_weeks_cheaper(self):
        card = RateCard(daily=D("2000"), weekly=D("6000"))
        assert calculate_lowest_tier_price(card, 10) == D("12000.00")

    def test_strategy_selects_function(self):
        card = RateCard(daily=D("1000"), weekly=D("6000"))
        assert unit_price(card, 10) == D("9000.00")
        assert unit_price(card, 10, PricingStrategy.LOWEST_TIER) == D("10000.00")

    def test_no_rates(self):
        with pytest.raises(RentalError) as exc_info:
            calculate_lowest_tier_price(RateCard(), 2)
        assert exc_info.value.kind is ErrorKind.PRICING_UNAVAILABLE


class TestQuote:

    def test_medium_term_quote(self):
        quote = quote_rental(_product(), 14, 1, PricingRates())
        assert quote.base_amount == D("14000.00")
        assert quote.term_discount == D("700.00")
        assert quote.rental_fee == D("13300.00")
        assert quote.tax_amount == D("1330.00")
        assert quote.total_amount == D("14630.00")
        assert quote.deposit_amount == D("0")

    def test_long_term_and_product_discount_add(self):
        product = _product(discount_rate=D("0.05"))
        quote = quote_rental(product, 30, 1, PricingRates())
        assert quote.term_discount == D("3000.00")
        assert quote.product_discount == D("1500.00")
        assert quote.discount_amount == D("4500.00")
        assert quote.total_amount == D("28050.00")

    def test_discount_never_exceeds_base(self):
        product = _product(discount_rate=D("1"))
        quote = quote_rental(product, 14, 1, PricingRates())
        assert quote.discount_amount == quote.base_amount
        assert quote.rental_fee == D("0.00")

    def test_insurance_is_taxed(self):
        product = _product(insurance_fee=D("300"))
        quote = quote_rental(product, 2, 2, PricingRates())
        assert quote.base_amount == D("4000.00")
        assert quote.insurance_fee == D("600.00")
        assert quote.subtotal == D("4600.00")
        assert quote.tax_amount == D("460.00")
        assert quote.total_amount == D("5060.00")

    def test_delivery_judged_after_tax(self):
        quote = quote_rental(_product(), 2, 1, PricingRates(), DeliveryMethod.STANDARD)
        assert quote.delivery_fee == D("500.00")
        assert quote.total_amount == D("2700.00")

    def test_to_fees_carries_deposit(self):
        rates = PricingRates(deposit_required=True)
        quote = quote_rental(_product(deposit_amount=D("2000")), 2, 1, rates)
        fees = quote.to_fees()
        assert fees.deposit_fee == D("2000.00")
        assert fees.rental_fee == quote.rental_fee


class TestComponents:

    def test_discount_pair(self):
        term, product = calculate_discount(D("20000"), 14, PricingRates(), D("0.10"))
        assert term == D("1000.00")
        assert product == D("2000.00")

    def test_short_rental_has_no_term_discount(self):
        term, _ = calculate_discount(D("5000"), 13, PricingRates())
        assert term == D("0.00")

    def test_insurance(self):
        assert calculate_insurance(D("300"), 2) == D("600.00")

    def test_tax_rounds_half_up(self):
        assert calculate_tax(D("0.05"), D("0.10")) == D("0.01")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            calculate_tax(100.0, D("0.10"))


class TestDeposit:

    def test_not_required(self):
        product = _product(deposit_amount=D("2000"))
        assert calculate_deposit(product, 2, PricingRates()) == D("0")

    def test_fixed_per_unit(self):
        product = _product(deposit_amount=D("2000"))
        assert calculate_deposit(product, 2, PricingRates(deposit_required=True)) == D("4000.00")

    def test_rate_of_replacement_value(self):
        product = _product(replacement_value=D("50000"))
        assert calculate_deposit(product, 2, PricingRates(deposit_required=True)) == D("30000.00")

    def test_nothing_to_base_it_on(self):
        assert calculate_deposit(_product(), 1, PricingRates(deposit_required=True)) == D("0")


class TestDeliveryFee:

    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            (DeliveryMethod.STANDARD, D("500.00")),
            (DeliveryMethod.EXPRESS, D("750.00")),
            ("mail", D("250.00")),
            (DeliveryMethod.PICKUP, D("0")),
            (None, D("0")),
        ],
    )
    def test_methods(self, method, expected):
        assert calculate_delivery_fee(D("1000"), method, PricingRates()) == expected

    def test_free_at_threshold(self):
        assert calculate_delivery_fee(D("5000"), "express", PricingRates()) == D("0")

    def test_unknown_method(self):
        with pytest.raises(RentalError) as exc_info:
            calculate_delivery_fee(D("1000"), "drone", PricingRates())
        assert exc_info.value.kind is ErrorKind.INVALID_FORMAT
        assert exc_info.value.payload["field"] == "delivery_method"


class TestLaterFees:

    def test_overdue_fee_on_total(self):
        assert calculate_overdue_fee(D("10000"), 3, D("0.10")) == D("3000.00")

    @pytest.mark.parametrize("days", [0, -2])
    def test_no_overdue_fee_when_on_time(self, days):
        assert calculate_overdue_fee(D("10000"), days, D("0.10")) == D("0")

    def test_extension_fee(self):
        assert calculate_extension_fee(D("5000"), 5, 2, D("1.0")) == D("2000.00")

    def test_extension_fee_with_premium_rate(self):
        assert calculate_extension_fee(D("5000"), 5, 2, D("1.5")) == D("3000.00")

    def test_early_return_discount(self):
        assert calculate_early_return_discount(D("5000"), 5, 3, D("0.10")) == D("300.00")
        assert calculate_early_return_discount(D("5000"), 5, 0, D("0.10")) == D("0")

    def test_daily_equivalent(self):
        card = RateCard(daily=D("1000"), weekly=D("4900"))
        assert daily_equivalent_rate(card) == D("700.00")

    def test_replacement_upgrade(self):
        source = _product(daily="1000")
        target = _product(daily="1500", replacement_fee=D("500"))
        assert calculate_replacement_fee(source, target, 4) == D("2500.00")

    def test_replacement_downgrade_is_free(self):
        source = _product(daily="1500")
        target = _product(daily="1000", replacement_fee=D("500"))
        assert calculate_replacement_fee(source, target, 4) == D("0")
