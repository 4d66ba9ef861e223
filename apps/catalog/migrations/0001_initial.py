import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(db_index=True, max_length=64, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("category", models.CharField(blank=True, db_index=True, max_length=80)),
                ("brand", models.CharField(blank=True, max_length=80)),
                ("barcode", models.CharField(blank=True, db_index=True, max_length=64)),
                ("location", models.CharField(blank=True, max_length=80)),
                ("notes", models.TextField(blank=True)),
                ("cost_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("sale_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("sale_price_afn", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("reorder_level", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(sale_price__gte=0), name="product_sale_price_gte_zero"),
                    models.CheckConstraint(condition=models.Q(cost_price__gte=0), name="product_cost_price_gte_zero"),
                ],
            },
        ),
    ]
