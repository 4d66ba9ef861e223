import uuid

from django.db import models

from apps.sales.models import PaymentMethod


class DebtStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    DUE_SOON = "DUE_SOON", "Due Soon"
    OVERDUE = "OVERDUE", "Overdue"
    SETTLED = "SETTLED", "Settled"


class DebtSource(models.TextChoices):
    SALE = "SALE", "Credit Sale"
    LENDING = "LENDING", "Cash Lending"


class DebtRecord(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey("customers.Customer", on_delete=models.CASCADE, related_name="debts")
    invoice = models.ForeignKey("sales.Invoice", null=True, blank=True, on_delete=models.CASCADE, related_name="debts")
    source = models.CharField(max_length=16, choices=DebtSource.choices, default=DebtSource.SALE)
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=4)
    original_amount = models.DecimalField(max_digits=12, decimal_places=2)
    original_amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    paid_amount_afn = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    remaining_amount = models.DecimalField(max_digits=12, decimal_places=2)
    remaining_amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    due_date = models.DateTimeField()
    notes = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=DebtStatus.choices, default=DebtStatus.ACTIVE)
    created_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_date", "created_at"]
        indexes = [
            models.Index(fields=["status", "due_date"], name="debt_status_due_idx"),
            models.Index(fields=["customer", "created_at"], name="debt_customer_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(remaining_amount_afn__gte=0), name="debt_remaining_afn_gte_zero"),
        ]

    def __str__(self):
        return f"{self.customer} {self.remaining_amount_afn} AFN due {self.due_date:%Y-%m-%d}"

    @property
    def is_settled(self):
        return self.remaining_amount_afn <= 0


class DebtPayment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    debt = models.ForeignKey(DebtRecord, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    amount_afn = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    reference = models.CharField(max_length=120, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    paid_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-paid_at"]
