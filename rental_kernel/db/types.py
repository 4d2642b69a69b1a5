"""
Module: rental_kernel.db.types
Responsibility: Column types and rounding helpers for money.  Centralizes
    precision and rounding so that every model, engine and service uses the
    same definitions.
Architecture position: Kernel > DB.  Imported by db/base.py, models/, domain/,
    rental_engines.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money anywhere.  ExactDecimal stores NUMERIC on real
      databases and decimal text on SQLite, whose NUMERIC affinity would
      otherwise round-trip through a binary float.
    - round_money() is the ONLY sanctioned rounding function.  Every
      intermediate monetary step is rounded to MONEY_DECIMAL_PLACES with
      DEFAULT_ROUNDING.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 6
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never loses precision.

    Numeric(38, 9) on PostgreSQL; String(64) holding ``str(Decimal)`` on
    SQLite.
    """

    impl = Numeric(38, 9)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(38, 9, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("float is not accepted for decimal columns")
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value) if not isinstance(value, Decimal) else value


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to ``decimal_places``.

    This is the ONLY sanctioned rounding function for money.  Pricing code
    calls it after every multiplication and division so that rounding drift
    cannot accumulate across steps.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int or string to Decimal.

    Raises:
        TypeError: If ``value`` is a float.
    """
    if isinstance(value, float):
        raise TypeError(f"float is not accepted for money: {value!r}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)
