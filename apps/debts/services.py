import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError
from apps.common.money import ZERO, afn_to_usd, round_usd
from apps.customers.models import Customer
from apps.debts.models import DebtPayment, DebtRecord, DebtSource, DebtStatus
from apps.ledger.models import CashEntryType
from apps.ledger.services import post_cash_entry
from apps.sales.checkout import derive_invoice_status
from apps.sales.models import Invoice, Payment, PaymentMethod

logger = logging.getLogger(__name__)

DUE_SOON_WINDOW = timedelta(hours=24)


def derive_status(due_date, remaining_afn, now=None):
    if remaining_afn <= 0:
        return DebtStatus.SETTLED
    now = now or timezone.now()
    if due_date < now:
        return DebtStatus.OVERDUE
    if due_date - now <= DUE_SOON_WINDOW:
        return DebtStatus.DUE_SOON
    return DebtStatus.ACTIVE


def refresh_statuses(queryset=None, now=None):
    now = now or timezone.now()
    queryset = DebtRecord.objects.all() if queryset is None else queryset
    updated = 0
    for debt in queryset.exclude(status=DebtStatus.SETTLED).only("id", "due_date", "remaining_amount_afn", "status"):
        status = derive_status(debt.due_date, debt.remaining_amount_afn, now)
        if status != debt.status:
            DebtRecord.objects.filter(pk=debt.pk).update(status=status)
            updated += 1
    if updated:
        logger.info("Refreshed %s debt statuses", updated)
    return updated


def _lock_customer(customer):
    return Customer.objects.select_for_update().get(pk=customer.pk)


def open_debt_for_sale(*, invoice, customer, outstanding_amount, outstanding_amount_afn, due_date, notes="", user=None):
    debt = DebtRecord.objects.create(
        customer=customer,
        invoice=invoice,
        source=DebtSource.SALE,
        exchange_rate=invoice.exchange_rate,
        original_amount=outstanding_amount,
        original_amount_afn=outstanding_amount_afn,
        remaining_amount=outstanding_amount,
        remaining_amount_afn=outstanding_amount_afn,
        due_date=due_date,
        notes=notes or f"Credit sale {invoice.invoice_number}",
        status=derive_status(due_date, outstanding_amount_afn),
        created_by=user,
    )
    _lock_customer(customer).apply_balance_delta(
        usd_delta=outstanding_amount,
        afn_delta=outstanding_amount_afn,
        rate=invoice.exchange_rate,
    )
    return debt


def allocate_to_debt(debt, amount_afn):
    """Apply ``amount_afn`` to a locked debt and its invoice. Returns the (USD, AFN) applied.

    Paying off the full AFN remainder clears the USD remainder exactly so the
    two currencies never drift apart on a settled debt.
    """
    if amount_afn >= debt.remaining_amount_afn:
        amount_afn = debt.remaining_amount_afn
        amount = debt.remaining_amount
    else:
        amount = min(afn_to_usd(amount_afn, debt.exchange_rate), debt.remaining_amount)

    debt.paid_amount = round_usd(debt.paid_amount + amount)
    debt.paid_amount_afn = round_usd(debt.paid_amount_afn + amount_afn)
    debt.remaining_amount = round_usd(debt.remaining_amount - amount)
    debt.remaining_amount_afn = round_usd(debt.remaining_amount_afn - amount_afn)
    debt.status = derive_status(debt.due_date, debt.remaining_amount_afn)
    debt.save(
        update_fields=[
            "paid_amount",
            "paid_amount_afn",
            "remaining_amount",
            "remaining_amount_afn",
            "status",
            "updated_at",
        ]
    )

    if debt.invoice_id:
        invoice = Invoice.objects.select_for_update().get(pk=debt.invoice_id)
        invoice.paid_amount = round_usd(invoice.paid_amount + amount)
        invoice.outstanding_amount = max(round_usd(invoice.outstanding_amount - amount), ZERO)
        if debt.remaining_amount_afn <= 0:
            invoice.outstanding_amount = ZERO
        invoice.status = derive_invoice_status(invoice.paid_amount, invoice.outstanding_amount)
        invoice.save(update_fields=["paid_amount", "outstanding_amount", "status"])
    return amount, amount_afn


def record_debt_payment(*, debt, amount_afn, method=PaymentMethod.CASH, reference="", notes="", user=None):
    with transaction.atomic():
        debt = DebtRecord.objects.select_for_update().select_related("customer").get(pk=debt.pk)
        if debt.remaining_amount_afn <= 0:
            raise BusinessRuleError("This debt is already settled.")
        if amount_afn <= 0:
            raise BusinessRuleError("Payment amount must be greater than 0.", fields={"amount_afn": ["Must be greater than 0."]})
        if amount_afn > debt.remaining_amount_afn:
            raise BusinessRuleError(
                "Payment amount exceeds remaining balance.",
                fields={"amount_afn": [f"Remaining balance is {debt.remaining_amount_afn} AFN."]},
            )

        amount, amount_afn = allocate_to_debt(debt, amount_afn)
        _lock_customer(debt.customer).apply_balance_delta(
            usd_delta=-amount,
            afn_delta=-amount_afn,
            rate=debt.exchange_rate,
        )

        debt_payment = DebtPayment.objects.create(
            debt=debt,
            amount=amount,
            amount_afn=amount_afn,
            method=method,
            reference=reference,
            notes=notes,
            created_by=user,
        )
        Payment.objects.create(
            invoice_id=debt.invoice_id,
            customer_id=debt.customer_id,
            amount=amount,
            amount_afn=amount_afn,
            method=method,
            reference=reference or "Debt Payment",
            created_by=user,
        )
        post_cash_entry(
            entry_type=CashEntryType.DEBT_PAYMENT,
            amount_afn=amount_afn,
            reference_type="debt",
            reference_id=debt.id,
            description=f"Debt payment received from {debt.customer.name}",
            user=user,
        )
        record_audit(
            actor=user,
            action="debt.payment",
            entity_type="debt",
            entity_id=debt.id,
            details={"amount": amount, "amount_afn": amount_afn, "method": method},
        )
    return debt_payment


def lend(*, customer, amount_afn, exchange_rate, due_date=None, notes="", user=None):
    if amount_afn <= 0:
        raise BusinessRuleError("Lending amount must be greater than 0.", fields={"amount_afn": ["Must be greater than 0."]})
    due_date = due_date or timezone.now() + timedelta(days=settings.POS_DEFAULT_CREDIT_DAYS)
    amount = afn_to_usd(amount_afn, exchange_rate)
    with transaction.atomic():
        customer = _lock_customer(customer)
        debt = DebtRecord.objects.create(
            customer=customer,
            source=DebtSource.LENDING,
            exchange_rate=exchange_rate,
            original_amount=amount,
            original_amount_afn=amount_afn,
            remaining_amount=amount,
            remaining_amount_afn=amount_afn,
            due_date=due_date,
            notes=notes or "Cash Lending",
            status=derive_status(due_date, amount_afn),
            created_by=user,
        )
        customer.apply_balance_delta(usd_delta=amount, afn_delta=amount_afn, rate=exchange_rate)
        post_cash_entry(
            entry_type=CashEntryType.LENDING,
            amount_afn=-amount_afn,
            reference_type="debt",
            reference_id=debt.id,
            description=f"Cash lent to {customer.name}",
            user=user,
        )
        record_audit(
            actor=user,
            action="debt.lend",
            entity_type="debt",
            entity_id=debt.id,
            details={"customer_id": customer.id, "amount": amount, "amount_afn": amount_afn},
        )
    return debt


def update_debt(*, debt, user=None, **changes):
    with transaction.atomic():
        debt = DebtRecord.objects.select_for_update().get(pk=debt.pk)
        before = {"notes": debt.notes, "due_date": debt.due_date.isoformat()}
        if "notes" in changes:
            debt.notes = changes["notes"]
        if changes.get("due_date"):
            debt.due_date = changes["due_date"]
        debt.status = derive_status(debt.due_date, debt.remaining_amount_afn)
        debt.save(update_fields=["notes", "due_date", "status", "updated_at"])
        record_audit(
            actor=user,
            action="debt.update",
            entity_type="debt",
            entity_id=debt.id,
            details={"before": before, "after": {"notes": debt.notes, "due_date": debt.due_date.isoformat()}},
        )
    return debt


def delete_debt(*, debt, user=None):
    with transaction.atomic():
        debt = DebtRecord.objects.select_for_update().select_related("customer").get(pk=debt.pk)
        if debt.remaining_amount_afn > 0:
            _lock_customer(debt.customer).apply_balance_delta(
                usd_delta=-debt.remaining_amount,
                afn_delta=-debt.remaining_amount_afn,
                rate=debt.exchange_rate,
            )
        if debt.invoice_id:
            invoice = Invoice.objects.select_for_update().get(pk=debt.invoice_id)
            invoice.outstanding_amount = ZERO
            invoice.status = derive_invoice_status(invoice.paid_amount, invoice.outstanding_amount)
            invoice.save(update_fields=["outstanding_amount", "status"])
        if debt.source == DebtSource.LENDING:
            post_cash_entry(
                entry_type=CashEntryType.LENDING_REVERSAL,
                amount_afn=debt.original_amount_afn,
                reference_type="debt",
                reference_id=debt.id,
                description=f"Lending deleted, balance restored for {debt.customer.name}",
                user=user,
            )
        record_audit(
            actor=user,
            action="debt.delete",
            entity_type="debt",
            entity_id=debt.id,
            details={
                "customer_id": debt.customer_id,
                "source": debt.source,
                "remaining_amount": debt.remaining_amount,
                "remaining_amount_afn": debt.remaining_amount_afn,
            },
        )
        debt.delete()
