"""Rounding rules shared by every money calculation in the shop.

USD amounts are kept to the cent. AFN amounts shown to the operator are whole
afghani, rounded half-up the same way the till display rounds them.
"""
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.0001")
SETTLEMENT_TOLERANCE = Decimal("0.05")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_usd(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_afn(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def round_rate(value) -> Decimal:
    return to_decimal(value).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


def usd_to_afn(amount, rate) -> Decimal:
    return round_usd(to_decimal(amount) * to_decimal(rate))


def afn_to_usd(amount_afn, rate) -> Decimal:
    rate = to_decimal(rate)
    if rate <= 0:
        raise ValueError("exchange rate must be greater than 0")
    return round_usd(to_decimal(amount_afn) / rate)


def is_settled(outstanding) -> bool:
    return to_decimal(outstanding) <= SETTLEMENT_TOLERANCE


def default_exchange_rate() -> Decimal:
    return round_rate(settings.POS_DEFAULT_EXCHANGE_RATE)
