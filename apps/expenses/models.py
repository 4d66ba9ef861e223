import uuid

from django.db import models
from django.utils import timezone


class Expense(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.CharField(max_length=80)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=14, decimal_places=2, help_text="Amount in AFN.")
    expense_date = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="expenses")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-expense_date", "-created_at"]
        indexes = [
            models.Index(fields=["expense_date"], name="expense_date_idx"),
            models.Index(fields=["category", "expense_date"], name="expense_category_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="expense_amount_gt_zero"),
        ]

    def __str__(self):
        return f"{self.category}: {self.amount} AFN"
