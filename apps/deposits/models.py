import uuid

from django.db import models


class DepositStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    PARTIAL = "PARTIAL", "Partially Withdrawn"
    WITHDRAWN = "WITHDRAWN", "Withdrawn"


class CustomerDeposit(models.Model):
    """AFN a customer leaves with the shop for safekeeping. It sits in the cash drawer until withdrawn."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    deposit_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey("customers.Customer", on_delete=models.CASCADE, related_name="deposits")
    original_amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    withdrawn_amount_afn = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    remaining_amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=16, choices=DepositStatus.choices, default=DepositStatus.ACTIVE)
    notes = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    deposited_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-deposited_at"]
        indexes = [
            models.Index(fields=["customer", "status"], name="deposit_customer_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(remaining_amount_afn__gte=0), name="deposit_remaining_afn_gte_zero"
            ),
        ]

    def __str__(self):
        return f"{self.deposit_number} {self.customer}"


class DepositWithdrawal(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    deposit = models.ForeignKey(CustomerDeposit, on_delete=models.CASCADE, related_name="withdrawals")
    amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    notes = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    withdrawn_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-withdrawn_at"]
