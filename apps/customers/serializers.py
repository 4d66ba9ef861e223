from decimal import Decimal

from rest_framework import serializers

from apps.accounts.serializers import AdminKeySerializer
from apps.customers.models import Customer
from apps.sales.models import Invoice, Payment, PaymentMethod
from apps.shop.services import get_exchange_rate


class CustomerSerializer(serializers.ModelSerializer):
    outstanding_balance_afn = serializers.SerializerMethodField()
    balance_afn_is_fixed = serializers.BooleanField(read_only=True)

    class Meta:
        model = Customer
        fields = [
            "id",
            "display_id",
            "name",
            "phone",
            "email",
            "address",
            "notes",
            "credit_limit",
            "payment_terms",
            "outstanding_balance",
            "outstanding_balance_afn",
            "balance_afn_is_fixed",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "display_id",
            "outstanding_balance",
            "is_active",
            "created_at",
            "updated_at",
        ]

    def get_outstanding_balance_afn(self, obj):
        rate = self.context.get("exchange_rate")
        if rate is None:
            rate = get_exchange_rate()
            self.context["exchange_rate"] = rate
        return obj.displayed_balance_afn(rate)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_credit_limit(self, value):
        if value < 0:
            raise serializers.ValidationError("credit_limit must be greater than or equal to 0")
        return value


class CustomerInvoiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ["id", "invoice_number", "total", "total_local", "paid_amount", "outstanding_amount", "status", "created_at"]
        read_only_fields = fields


class CustomerPaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = ["id", "invoice", "invoice_number", "amount", "amount_afn", "method", "reference", "created_at"]
        read_only_fields = fields


class CustomerDetailSerializer(CustomerSerializer):
    recent_invoices = serializers.SerializerMethodField()
    recent_payments = serializers.SerializerMethodField()

    class Meta(CustomerSerializer.Meta):
        fields = CustomerSerializer.Meta.fields + ["recent_invoices", "recent_payments"]

    def get_recent_invoices(self, obj):
        return CustomerInvoiceSerializer(obj.invoices.order_by("-created_at")[:10], many=True).data

    def get_recent_payments(self, obj):
        return CustomerPaymentSerializer(
            obj.payments.select_related("invoice").order_by("-created_at")[:10], many=True
        ).data


class ReceivePaymentSerializer(serializers.Serializer):
    amount_afn = serializers.DecimalField(max_digits=14, decimal_places=2)
    exchange_rate = serializers.DecimalField(max_digits=12, decimal_places=4, required=False, min_value=Decimal("0.0001"))
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=120)

    def validate_amount_afn(self, value):
        if value == 0:
            raise serializers.ValidationError("Amount cannot be zero.")
        return value


class BulkDeleteSerializer(AdminKeySerializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
