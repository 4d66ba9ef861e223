import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CashEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("SALE", "Sale"),
                            ("DEBT_PAYMENT", "Debt Payment"),
                            ("CUSTOMER_PAYMENT", "Customer Payment"),
                            ("REFUND", "Refund"),
                            ("EXPENSE", "Expense"),
                            ("EXPENSE_REVERSAL", "Expense Reversal"),
                            ("LENDING", "Lending"),
                            ("LENDING_REVERSAL", "Lending Reversal"),
                            ("DEPOSIT", "Customer Deposit"),
                            ("DEPOSIT_WITHDRAWAL", "Deposit Withdrawal"),
                            ("MANUAL", "Manual"),
                        ],
                        max_length=32,
                    ),
                ),
                ("amount_afn", models.DecimalField(decimal_places=2, max_digits=14)),
                ("reference_type", models.CharField(blank=True, max_length=64)),
                ("reference_id", models.CharField(blank=True, max_length=64)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cash_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "cash entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["entry_type", "created_at"], name="cash_type_created_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="cash_reference_idx"),
                ],
            },
        ),
    ]
