from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from apps.customers.models import Customer
from apps.debts.models import DebtPayment, DebtRecord
from apps.sales.models import PaymentMethod


class DebtPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = DebtPayment
        fields = ["id", "amount", "amount_afn", "method", "reference", "notes", "paid_at"]
        read_only_fields = fields


class DebtRecordSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    customer_display_id = serializers.CharField(source="customer.display_id", read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True, default=None)
    payments = DebtPaymentSerializer(many=True, read_only=True)

    class Meta:
        model = DebtRecord
        fields = [
            "id",
            "customer",
            "customer_name",
            "customer_display_id",
            "invoice",
            "invoice_number",
            "source",
            "exchange_rate",
            "original_amount",
            "original_amount_afn",
            "paid_amount",
            "paid_amount_afn",
            "remaining_amount",
            "remaining_amount_afn",
            "due_date",
            "notes",
            "status",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [field for field in fields if field not in ("due_date", "notes")]

    def validate_due_date(self, value):
        if value < timezone.now():
            raise serializers.ValidationError("Due date cannot be in the past.")
        return value


class DebtPaymentCreateSerializer(serializers.Serializer):
    amount_afn = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=120, default="")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class LendSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.filter(is_active=True))
    amount_afn = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    exchange_rate = serializers.DecimalField(max_digits=12, decimal_places=4, required=False, min_value=Decimal("0.0001"))
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")

    def validate_due_date(self, value):
        if value is not None and value < timezone.now():
            raise serializers.ValidationError("Due date cannot be in the past.")
        return value
