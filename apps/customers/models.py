import uuid
from decimal import Decimal

from django.db import models

from apps.common.money import round_afn, round_usd, usd_to_afn


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    display_id = models.CharField(max_length=7, unique=True, editable=False)
    name = models.CharField(max_length=255, db_index=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    credit_limit = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_terms = models.CharField(max_length=80, blank=True)
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    # Fixed local debt. Once set it is authoritative over outstanding_balance x rate.
    outstanding_balance_afn = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["phone"], name="customer_phone_idx"),
        ]

    def __str__(self):
        return f"{self.display_id} {self.name}"

    @property
    def balance_afn_is_fixed(self):
        return self.outstanding_balance_afn is not None

    def displayed_balance_afn(self, rate) -> Decimal:
        if self.outstanding_balance_afn is not None:
            return round_afn(self.outstanding_balance_afn)
        return round_afn(self.outstanding_balance * rate)

    def apply_balance_delta(self, *, usd_delta, afn_delta, rate):
        """Move both balances and save. Callers hold a row lock on the customer.

        The first AFN movement on a customer without a fixed AFN balance pins
        it to the USD balance at the event's rate before applying the delta.
        """
        if self.outstanding_balance_afn is None:
            self.outstanding_balance_afn = usd_to_afn(self.outstanding_balance, rate)
        self.outstanding_balance = round_usd(self.outstanding_balance + usd_delta)
        self.outstanding_balance_afn = round_usd(self.outstanding_balance_afn + afn_delta)
        self.save(update_fields=["outstanding_balance", "outstanding_balance_afn", "updated_at"])

    def has_outstanding_balance(self):
        if self.outstanding_balance > Decimal("0.05"):
            return True
        return self.outstanding_balance_afn is not None and self.outstanding_balance_afn > Decimal("1")
