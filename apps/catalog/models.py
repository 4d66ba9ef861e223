import uuid

from django.db import models


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sku = models.CharField(max_length=64, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    category = models.CharField(max_length=80, blank=True, db_index=True)
    brand = models.CharField(max_length=80, blank=True)
    barcode = models.CharField(max_length=64, blank=True, db_index=True)
    location = models.CharField(max_length=80, blank=True)
    notes = models.TextField(blank=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    sale_price = models.DecimalField(max_digits=12, decimal_places=2)
    # Fixed local price. When set it wins over sale_price x exchange rate.
    sale_price_afn = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    reorder_level = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(condition=models.Q(sale_price__gte=0), name="product_sale_price_gte_zero"),
            models.CheckConstraint(condition=models.Q(cost_price__gte=0), name="product_cost_price_gte_zero"),
        ]

    def save(self, *args, **kwargs):
        self.sku = (self.sku or "").strip().upper()
        self.name = (self.name or "").strip()
        self.category = (self.category or "").strip()
        super().save(*args, **kwargs)

    @property
    def has_fixed_afn_price(self):
        return self.sale_price_afn is not None and self.sale_price_afn > 0

    def __str__(self):
        return f"{self.sku} - {self.name}"
