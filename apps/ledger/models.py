import uuid

from django.db import models


class CashEntryType(models.TextChoices):
    SALE = "SALE", "Sale"
    DEBT_PAYMENT = "DEBT_PAYMENT", "Debt Payment"
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT", "Customer Payment"
    REFUND = "REFUND", "Refund"
    EXPENSE = "EXPENSE", "Expense"
    EXPENSE_REVERSAL = "EXPENSE_REVERSAL", "Expense Reversal"
    LENDING = "LENDING", "Lending"
    LENDING_REVERSAL = "LENDING_REVERSAL", "Lending Reversal"
    DEPOSIT = "DEPOSIT", "Customer Deposit"
    DEPOSIT_WITHDRAWAL = "DEPOSIT_WITHDRAWAL", "Deposit Withdrawal"
    MANUAL = "MANUAL", "Manual"


class CashEntry(models.Model):
    """One movement of the shop's cash drawer, in AFN. The balance is the sum of deltas."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    entry_type = models.CharField(max_length=32, choices=CashEntryType.choices)
    amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    reference_type = models.CharField(max_length=64, blank=True)
    reference_id = models.CharField(max_length=64, blank=True)
    description = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="cash_entries"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "cash entries"
        indexes = [
            models.Index(fields=["entry_type", "created_at"], name="cash_type_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="cash_reference_idx"),
        ]
