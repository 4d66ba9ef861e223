import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum


class MovementType(models.TextChoices):
    INBOUND = "INBOUND", "Inbound"
    SALE = "SALE", "Sale"
    RETURN = "RETURN", "Return"
    SALE_DELETE = "SALE_DELETE", "Sale Delete"
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"


class InventoryMovement(models.Model):
    """Signed stock ledger. A product's stock is the sum of its deltas."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity_delta = models.IntegerField()
    reference_type = models.CharField(max_length=64)
    reference_id = models.CharField(max_length=64)
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="inventory_movements"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="inventory_product_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["reference_type", "reference_id", "product"],
                name="unique_inventory_reference_product",
            )
        ]

    def clean(self):
        if self.quantity_delta == 0:
            raise ValidationError("quantity_delta cannot be zero")

        if self.quantity_delta < 0:
            available = self.current_stock(self.product_id)
            if available + self.quantity_delta < 0:
                raise ValidationError("insufficient stock")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @staticmethod
    def current_stock(product_id):
        result = InventoryMovement.objects.filter(product_id=product_id).aggregate(total=Sum("quantity_delta"))
        return result["total"] or 0
