# storefront/utils/money.py

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

CENTS = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x: Money) -> Money:
    return D(x).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_string_money(x) -> str:
    return str(round_money(x))


def from_minor_units(amount) -> Money:
    """Gateway integer amounts (cents) -> 2dp decimal currency."""
    if amount is None:
        return Decimal("0.00")
    return round_money(Decimal(int(amount)) / Decimal(100))


def to_minor_units(x) -> int:
    return int((round_money(x) * 100).to_integral_value(rounding=ROUND_HALF_UP))
