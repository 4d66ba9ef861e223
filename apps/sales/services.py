from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError
from apps.common.money import SETTLEMENT_TOLERANCE, ZERO, round_afn, round_usd, usd_to_afn
from apps.customers.models import Customer
from apps.debts.models import DebtRecord
from apps.debts.services import derive_status, open_debt_for_sale
from apps.inventory.models import InventoryMovement, MovementType
from apps.ledger.models import CashEntryType
from apps.ledger.services import post_cash_entry
from apps.sales.checkout import derive_invoice_status
from apps.sales.models import Invoice, InvoiceLine, Payment, PaymentMethod, SaleReturn, SaleReturnLine


def next_invoice_number(now=None):
    prefix = f"INV-{(now or timezone.now()).year}-"
    last = (
        Invoice.objects.select_for_update()
        .filter(invoice_number__startswith=prefix)
        .order_by("-invoice_number")
        .values_list("invoice_number", flat=True)
        .first()
    )
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{sequence:06d}"


def create_sale(*, cashier, customer, priced_lines, totals, settlement, payment_method=PaymentMethod.CASH,
                payment_reference="", due_date=None, debt_notes="", notes=""):
    with transaction.atomic():
        invoice = Invoice.objects.create(
            invoice_number=next_invoice_number(),
            customer=customer,
            cashier=cashier,
            subtotal=totals.subtotal,
            discount_percent=totals.discount_percent,
            discount=totals.discount,
            tax=totals.tax,
            total=totals.total,
            total_local=totals.total_afn,
            exchange_rate=totals.exchange_rate,
            paid_amount=settlement.paid_amount,
            outstanding_amount=settlement.outstanding_amount,
            status=settlement.status,
            payment_method=payment_method,
            notes=notes,
        )

        for line in priced_lines:
            InvoiceLine.objects.create(
                invoice=invoice,
                product=line.product,
                quantity=line.quantity,
                unit_price=line.unit_price,
                unit_price_afn=line.unit_price_afn,
                unit_cost=line.unit_cost,
                line_total=round_usd(line.line_total),
            )
            InventoryMovement.objects.create(
                product=line.product,
                movement_type=MovementType.SALE,
                quantity_delta=-line.quantity,
                reference_type="sale",
                reference_id=str(invoice.id),
                note=invoice.invoice_number,
                created_by=cashier,
            )

        if settlement.paid_amount_afn > 0:
            Payment.objects.create(
                invoice=invoice,
                customer=customer,
                amount=settlement.paid_amount,
                amount_afn=settlement.paid_amount_afn,
                method=payment_method,
                reference=payment_reference,
                created_by=cashier,
            )

        if settlement.credit_afn > 0:
            Payment.objects.create(
                customer=customer,
                amount=settlement.credit_amount,
                amount_afn=settlement.credit_afn,
                method=payment_method,
                reference=f"Credit from {invoice.invoice_number}",
                created_by=cashier,
            )
            Customer.objects.select_for_update().get(pk=customer.pk).apply_balance_delta(
                usd_delta=-settlement.credit_amount,
                afn_delta=-settlement.credit_afn,
                rate=totals.exchange_rate,
            )

        if settlement.is_credit_sale:
            open_debt_for_sale(
                invoice=invoice,
                customer=customer,
                outstanding_amount=settlement.outstanding_amount,
                outstanding_amount_afn=settlement.outstanding_amount_afn,
                due_date=due_date,
                notes=debt_notes,
                user=cashier,
            )

        post_cash_entry(
            entry_type=CashEntryType.SALE,
            amount_afn=settlement.cash_received_afn,
            reference_type="invoice",
            reference_id=invoice.id,
            description=f"Sale {invoice.invoice_number}",
            user=cashier,
        )
        record_audit(
            actor=cashier,
            action="sale.create",
            entity_type="invoice",
            entity_id=invoice.id,
            details={
                "invoice_number": invoice.invoice_number,
                "total": invoice.total,
                "total_afn": invoice.total_local,
                "paid_amount": invoice.paid_amount,
                "outstanding_amount": invoice.outstanding_amount,
                "credit_afn": settlement.credit_afn,
            },
        )
    return invoice


def process_return(*, invoice, items, reason="", user=None):
    """Take goods back on an invoice and settle the refund.

    ``items`` is a list of ``(invoice_line_id, quantity)``. The refund is valued
    at the invoice's own exchange rate. It first pays down what the customer
    still owes on this invoice; only the rest is handed back in cash.
    """
    if not items:
        raise BusinessRuleError("No items provided for return.", fields={"items": ["No items provided for return."]})

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        lines = {str(line.id): line for line in InvoiceLine.objects.select_for_update().filter(invoice=invoice)}

        requested = {}
        for line_id, quantity in items:
            line = lines.get(str(line_id))
            if line is None:
                raise BusinessRuleError(f"Item {line_id} does not belong to this invoice.", fields={"items": ["Unknown item."]})
            requested[str(line_id)] = requested.get(str(line_id), 0) + quantity

        refund = ZERO
        for line_id, quantity in requested.items():
            line = lines[line_id]
            if quantity <= 0:
                raise BusinessRuleError("Return quantity must be greater than 0.", fields={"items": ["Invalid quantity."]})
            if quantity > line.returnable_quantity:
                raise BusinessRuleError(
                    f"Cannot return {quantity} of {line.product.name}; only {line.returnable_quantity} returnable.",
                    fields={"items": [f"Only {line.returnable_quantity} returnable for {line.product.name}."]},
                )
            refund += line.unit_price * quantity

        refund = round_usd(refund)
        refund_afn = round_afn(refund * invoice.exchange_rate)

        sale_return = SaleReturn.objects.create(
            invoice=invoice,
            refund_amount=refund,
            refund_amount_afn=refund_afn,
            reason=reason,
            created_by=user,
        )
        for line_id, quantity in requested.items():
            line = lines[line_id]
            line.returned_quantity += quantity
            line.save(update_fields=["returned_quantity"])
            SaleReturnLine.objects.create(
                sale_return=sale_return,
                invoice_line=line,
                quantity=quantity,
                amount=round_usd(line.unit_price * quantity),
            )
            InventoryMovement.objects.create(
                product=line.product,
                movement_type=MovementType.RETURN,
                quantity_delta=quantity,
                reference_type="sale_return",
                reference_id=str(sale_return.id),
                note=f"Return on {invoice.invoice_number}",
                created_by=user,
            )

        # Only an open debt carries the outstanding amount on the customer's balance.
        debt = (
            DebtRecord.objects.select_for_update()
            .filter(invoice=invoice, remaining_amount_afn__gt=0)
            .order_by("created_at")
            .first()
        )
        if debt is None and invoice.outstanding_amount > 0:
            invoice.outstanding_amount = ZERO

        applied = min(refund, invoice.outstanding_amount)
        applied_afn = ZERO
        if applied > 0:
            settles_invoice = invoice.outstanding_amount - applied <= SETTLEMENT_TOLERANCE
            applied_afn = debt.remaining_amount_afn if settles_invoice else min(
                usd_to_afn(applied, invoice.exchange_rate), debt.remaining_amount_afn
            )
            debt.remaining_amount = ZERO if settles_invoice else max(round_usd(debt.remaining_amount - applied), ZERO)
            debt.remaining_amount_afn = round_usd(debt.remaining_amount_afn - applied_afn)
            debt.status = derive_status(debt.due_date, debt.remaining_amount_afn)
            debt.save(update_fields=["remaining_amount", "remaining_amount_afn", "status", "updated_at"])

            invoice.outstanding_amount = ZERO if settles_invoice else round_usd(invoice.outstanding_amount - applied)
            Customer.objects.select_for_update().get(pk=debt.customer_id).apply_balance_delta(
                usd_delta=-applied,
                afn_delta=-applied_afn,
                rate=invoice.exchange_rate,
            )

        cash_refund = round_usd(refund - applied)
        cash_refund_afn = max(round_usd(refund_afn - applied_afn), ZERO) if cash_refund > 0 else ZERO
        if cash_refund > 0:
            Payment.objects.create(
                invoice=invoice,
                customer_id=invoice.customer_id,
                amount=-cash_refund,
                amount_afn=-cash_refund_afn,
                method=PaymentMethod.CASH,
                reference="RETURN REFUND",
                created_by=user,
            )
            post_cash_entry(
                entry_type=CashEntryType.REFUND,
                amount_afn=-cash_refund_afn,
                reference_type="sale_return",
                reference_id=sale_return.id,
                description=f"Refund on {invoice.invoice_number}",
                user=user,
            )
            invoice.paid_amount = max(round_usd(invoice.paid_amount - cash_refund), ZERO)

        invoice.returned_amount = round_usd(invoice.returned_amount + refund)
        invoice.status = derive_invoice_status(invoice.paid_amount, invoice.outstanding_amount)
        invoice.save(update_fields=["paid_amount", "outstanding_amount", "returned_amount", "status"])

        sale_return.applied_to_balance = applied
        sale_return.applied_to_balance_afn = applied_afn
        sale_return.cash_refund = cash_refund
        sale_return.cash_refund_afn = cash_refund_afn
        sale_return.save(
            update_fields=["applied_to_balance", "applied_to_balance_afn", "cash_refund", "cash_refund_afn"]
        )
        record_audit(
            actor=user,
            action="sale.return",
            entity_type="invoice",
            entity_id=invoice.id,
            details={
                "invoice_number": invoice.invoice_number,
                "refund": refund,
                "refund_afn": refund_afn,
                "applied_to_balance": applied,
                "cash_refund_afn": cash_refund_afn,
                "items": [{"item": line_id, "quantity": quantity} for line_id, quantity in requested.items()],
            },
        )
    return sale_return


def _reverse_invoice(invoice, user):
    for line in invoice.lines.select_related("product"):
        if line.returnable_quantity > 0:
            InventoryMovement.objects.create(
                product=line.product,
                movement_type=MovementType.SALE_DELETE,
                quantity_delta=line.returnable_quantity,
                reference_type="sale_delete",
                reference_id=str(invoice.id),
                note=f"Deleted {invoice.invoice_number}",
                created_by=user,
            )

    for debt in DebtRecord.objects.select_for_update().filter(invoice=invoice, remaining_amount_afn__gt=0):
        Customer.objects.select_for_update().get(pk=debt.customer_id).apply_balance_delta(
            usd_delta=-debt.remaining_amount,
            afn_delta=-debt.remaining_amount_afn,
            rate=debt.exchange_rate,
        )
    invoice.delete()


def delete_invoice(*, invoice, user=None):
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        snapshot = {"invoice_number": invoice.invoice_number, "total": invoice.total}
        invoice_id = invoice.id
        _reverse_invoice(invoice, user)
        record_audit(actor=user, action="sale.delete", entity_type="invoice", entity_id=invoice_id, details=snapshot)


def bulk_delete_invoices(*, ids, user=None):
    deleted = []
    with transaction.atomic():
        for invoice in Invoice.objects.select_for_update().filter(pk__in=ids):
            deleted.append(invoice.invoice_number)
            _reverse_invoice(invoice, user)
        record_audit(
            actor=user,
            action="sale.bulk_delete",
            entity_type="invoice",
            entity_id="BULK",
            details={"requested": len(ids), "deleted": deleted},
        )
    return len(deleted)


def delete_all_invoices(*, user=None):
    with transaction.atomic():
        invoices = list(Invoice.objects.select_for_update())
        for invoice in invoices:
            for line in invoice.lines.select_related("product"):
                if line.returnable_quantity > 0:
                    InventoryMovement.objects.create(
                        product=line.product,
                        movement_type=MovementType.SALE_DELETE,
                        quantity_delta=line.returnable_quantity,
                        reference_type="sale_delete",
                        reference_id=str(invoice.id),
                        note=f"Deleted {invoice.invoice_number}",
                        created_by=user,
                    )
        DebtRecord.objects.all().delete()
        Payment.objects.all().delete()
        Invoice.objects.all().delete()
        Customer.objects.update(outstanding_balance=ZERO, outstanding_balance_afn=ZERO, updated_at=timezone.now())
        record_audit(
            actor=user,
            action="sale.delete_all",
            entity_type="invoice",
            entity_id="ALL",
            details={"deleted": len(invoices)},
        )
    return len(invoices)
