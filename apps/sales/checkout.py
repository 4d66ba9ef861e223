"""Till arithmetic: price a cart, apply the discount, settle the tender.

Everything here is pure. Amounts in USD stay unrounded until the totals are
built; AFN totals are rounded to whole afghani the way the till shows them.
"""
from dataclasses import dataclass
from decimal import Decimal

from apps.common.money import (
    SETTLEMENT_TOLERANCE,
    ZERO,
    afn_to_usd,
    round_afn,
    round_usd,
    to_decimal,
)
from apps.sales.models import InvoiceStatus

HUNDRED = Decimal("100")
UNIT_PRICE_PRECISION = Decimal("0.0001")


class CheckoutError(ValueError):
    pass


@dataclass(frozen=True)
class PricedLine:
    product: object
    quantity: int
    unit_price: Decimal
    unit_price_afn: Decimal
    unit_cost: Decimal

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    @property
    def line_total_afn(self):
        return self.unit_price_afn * self.quantity


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: Decimal
    discount_percent: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    total_afn: Decimal
    exchange_rate: Decimal


@dataclass(frozen=True)
class Settlement:
    paid_amount: Decimal
    paid_amount_afn: Decimal
    outstanding_amount: Decimal
    outstanding_amount_afn: Decimal
    change_afn: Decimal
    credit_amount: Decimal
    credit_afn: Decimal
    status: str

    @property
    def is_credit_sale(self):
        return self.outstanding_amount > 0

    @property
    def cash_received_afn(self):
        return self.paid_amount_afn + self.credit_afn


def price_line(product, quantity, exchange_rate):
    rate = to_decimal(exchange_rate)
    if rate <= 0:
        raise CheckoutError("exchange rate must be greater than 0")
    if quantity <= 0:
        raise CheckoutError("quantity must be greater than 0")

    fixed_afn = getattr(product, "sale_price_afn", None)
    if fixed_afn is not None and fixed_afn > 0:
        unit_price_afn = to_decimal(fixed_afn)
        unit_price = (unit_price_afn / rate).quantize(UNIT_PRICE_PRECISION)
    else:
        unit_price = to_decimal(product.sale_price)
        unit_price_afn = round_usd(unit_price * rate)

    return PricedLine(
        product=product,
        quantity=quantity,
        unit_price=unit_price,
        unit_price_afn=unit_price_afn,
        unit_cost=to_decimal(getattr(product, "cost_price", ZERO) or ZERO),
    )


def compute_totals(lines, discount_percent, exchange_rate, tax=ZERO):
    percent = to_decimal(discount_percent or ZERO)
    if percent < 0 or percent > HUNDRED:
        raise CheckoutError("discount percent must be between 0 and 100")
    tax = to_decimal(tax or ZERO)
    if tax < 0:
        raise CheckoutError("tax cannot be negative")
    rate = to_decimal(exchange_rate)

    subtotal = sum((line.line_total for line in lines), ZERO)
    subtotal_afn = sum((line.line_total_afn for line in lines), ZERO)
    keep = (HUNDRED - percent) / HUNDRED

    discount = subtotal * percent / HUNDRED
    total = subtotal - discount + tax
    total_afn = round_afn(subtotal_afn * keep + tax * rate)

    return CheckoutTotals(
        subtotal=round_usd(subtotal),
        discount_percent=percent,
        discount=round_usd(discount),
        tax=round_usd(tax),
        total=round_usd(total),
        total_afn=total_afn,
        exchange_rate=rate,
    )


def derive_invoice_status(paid_amount, outstanding_amount):
    if outstanding_amount <= 0:
        return InvoiceStatus.PAID
    if paid_amount <= 0:
        return InvoiceStatus.UNPAID
    return InvoiceStatus.PARTIAL


def settle(totals, tendered_afn, exchange_rate, return_change=True):
    """Split what the customer handed over into payment, change, credit and debt.

    Over-payment is either handed back as change (``return_change``) or kept as
    credit on the customer's account. Under-payment leaves an outstanding
    amount unless it is within the settlement tolerance, which is forgiven.
    """
    tendered_afn = to_decimal(tendered_afn or ZERO)
    if tendered_afn < 0:
        raise CheckoutError("amount tendered cannot be negative")
    rate = to_decimal(exchange_rate)

    change_afn = ZERO
    credit_afn = ZERO
    credit_amount = ZERO

    if tendered_afn >= totals.total_afn:
        excess_afn = tendered_afn - totals.total_afn
        paid_amount = totals.total
        paid_amount_afn = totals.total_afn
        if return_change:
            change_afn = excess_afn
        else:
            credit_afn = excess_afn
            credit_amount = afn_to_usd(excess_afn, rate)
        outstanding_amount = ZERO
        outstanding_amount_afn = ZERO
    else:
        paid_amount_afn = tendered_afn
        paid_amount = min(afn_to_usd(tendered_afn, rate), totals.total)
        outstanding_amount = round_usd(totals.total - paid_amount)
        outstanding_amount_afn = totals.total_afn - tendered_afn
        if outstanding_amount <= SETTLEMENT_TOLERANCE:
            paid_amount = totals.total
            outstanding_amount = ZERO
            outstanding_amount_afn = ZERO

    return Settlement(
        paid_amount=paid_amount,
        paid_amount_afn=paid_amount_afn,
        outstanding_amount=outstanding_amount,
        outstanding_amount_afn=outstanding_amount_afn,
        change_afn=change_afn,
        credit_amount=credit_amount,
        credit_afn=credit_afn,
        status=derive_invoice_status(paid_amount, outstanding_amount),
    )
