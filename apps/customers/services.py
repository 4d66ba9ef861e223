import random
import string

from django.db import transaction

from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError
from apps.common.money import ZERO, afn_to_usd
from apps.customers.models import Customer
from apps.debts.models import DebtRecord
from apps.debts.services import allocate_to_debt
from apps.ledger.models import CashEntryType
from apps.ledger.services import post_cash_entry
from apps.sales.models import Invoice, Payment, PaymentMethod

DISPLAY_ID_ATTEMPTS = 20


def generate_display_id():
    for _ in range(DISPLAY_ID_ATTEMPTS):
        candidate = "".join(random.choices(string.ascii_uppercase, k=2)) + str(random.randint(10000, 99999))
        if not Customer.objects.filter(display_id=candidate).exists():
            return candidate
    raise RuntimeError("Could not allocate a unique customer display id.")


def receive_customer_payment(*, customer, amount_afn, exchange_rate, method=PaymentMethod.CASH, reference="", user=None):
    """Record money received from (or refunded to, when negative) a customer.

    The AFN amount is what the cashier counted and moves the AFN balance by
    exactly that much. Receipts are spread over the customer's open debts,
    oldest first.
    """
    if amount_afn == 0:
        raise BusinessRuleError("Amount cannot be zero.", fields={"amount_afn": ["Amount cannot be zero."]})
    amount = afn_to_usd(amount_afn, exchange_rate)

    with transaction.atomic():
        customer = Customer.objects.select_for_update().get(pk=customer.pk)
        customer.apply_balance_delta(usd_delta=-amount, afn_delta=-amount_afn, rate=exchange_rate)

        payment = Payment.objects.create(
            customer=customer,
            amount=amount,
            amount_afn=amount_afn,
            method=method,
            reference=reference or ("Debt Repayment" if amount_afn > 0 else "Refund"),
            created_by=user,
        )

        allocations = []
        remaining_afn = amount_afn
        if remaining_afn > 0:
            open_debts = (
                DebtRecord.objects.select_for_update()
                .filter(customer=customer, remaining_amount_afn__gt=0)
                .order_by("created_at")
            )
            for debt in open_debts:
                if remaining_afn <= 0:
                    break
                applied, applied_afn = allocate_to_debt(debt, min(remaining_afn, debt.remaining_amount_afn))
                remaining_afn -= applied_afn
                allocations.append({"debt_id": str(debt.id), "amount": applied, "amount_afn": applied_afn})

        post_cash_entry(
            entry_type=CashEntryType.CUSTOMER_PAYMENT,
            amount_afn=amount_afn,
            reference_type="customer",
            reference_id=customer.id,
            description=f"{'Payment from' if amount_afn > 0 else 'Refund to'} {customer.name}",
            user=user,
        )
        record_audit(
            actor=user,
            action="customer.payment",
            entity_type="customer",
            entity_id=customer.id,
            details={
                "amount": amount,
                "amount_afn": amount_afn,
                "exchange_rate": exchange_rate,
                "allocations": allocations,
                "unallocated_afn": max(remaining_afn, ZERO),
            },
        )
    return payment, customer, allocations


def delete_customer(*, customer, user=None):
    with transaction.atomic():
        customer = Customer.objects.select_for_update().get(pk=customer.pk)
        if customer.has_outstanding_balance():
            raise BusinessRuleError(
                f'Cannot delete customer "{customer.name}" with outstanding balance. Please clear all debts first.'
            )
        if customer.deposits.filter(remaining_amount_afn__gt=0).exists():
            raise BusinessRuleError(
                f'Cannot delete customer "{customer.name}" while they hold a deposit. Please withdraw it first.'
            )
        invoice_count = customer.invoices.count()
        DebtRecord.objects.filter(customer=customer).delete()
        Payment.objects.filter(customer=customer).delete()
        Invoice.objects.filter(customer=customer).delete()
        record_audit(
            actor=user,
            action="customer.delete",
            entity_type="customer",
            entity_id=customer.id,
            details={"display_id": customer.display_id, "name": customer.name, "invoices_removed": invoice_count},
        )
        customer.delete()
