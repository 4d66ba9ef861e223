from decimal import Decimal

from rest_framework import serializers

from apps.customers.models import Customer
from apps.deposits.models import CustomerDeposit, DepositWithdrawal


class DepositWithdrawalSerializer(serializers.ModelSerializer):
    class Meta:
        model = DepositWithdrawal
        fields = ["id", "amount_afn", "notes", "withdrawn_at"]
        read_only_fields = fields


class CustomerDepositSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    customer_display_id = serializers.CharField(source="customer.display_id", read_only=True)
    customer_phone = serializers.CharField(source="customer.phone", read_only=True)
    withdrawals = DepositWithdrawalSerializer(many=True, read_only=True)

    class Meta:
        model = CustomerDeposit
        fields = [
            "id",
            "deposit_number",
            "customer",
            "customer_name",
            "customer_display_id",
            "customer_phone",
            "original_amount_afn",
            "withdrawn_amount_afn",
            "remaining_amount_afn",
            "status",
            "notes",
            "withdrawals",
            "deposited_at",
            "updated_at",
        ]
        read_only_fields = fields


class DepositCreateSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.filter(is_active=True))
    amount_afn = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class WithdrawSerializer(serializers.Serializer):
    amount_afn = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
