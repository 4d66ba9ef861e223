from decimal import Decimal

from django.db.models import Sum

from apps.common.money import ZERO, round_usd
from apps.ledger.models import CashEntry, CashEntryType


def current_balance() -> Decimal:
    total = CashEntry.objects.aggregate(total=Sum("amount_afn"))["total"]
    return round_usd(total or ZERO)


def post_cash_entry(*, entry_type, amount_afn, reference_type="", reference_id="", description="", user=None):
    amount_afn = round_usd(amount_afn)
    if amount_afn == 0:
        return None
    return CashEntry.objects.create(
        entry_type=entry_type,
        amount_afn=amount_afn,
        reference_type=reference_type,
        reference_id=str(reference_id or ""),
        description=description[:255],
        created_by=user if user is not None and getattr(user, "is_authenticated", False) else None,
    )


def set_balance(*, balance, description="", user=None):
    balance = round_usd(balance)
    if balance < 0:
        raise ValueError("Balance cannot be negative.")
    previous = current_balance()
    post_cash_entry(
        entry_type=CashEntryType.MANUAL,
        amount_afn=balance - previous,
        reference_type="manual",
        description=description or f"Manual balance update from {previous} to {balance}",
        user=user,
    )
    return previous, balance
