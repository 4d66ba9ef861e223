from decimal import Decimal

from rest_framework import serializers

from apps.accounts.serializers import AdminKeySerializer
from apps.ledger.models import CashEntry


class CashEntrySerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = CashEntry
        fields = [
            "id",
            "entry_type",
            "amount_afn",
            "reference_type",
            "reference_id",
            "description",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = fields


class SetBalanceSerializer(AdminKeySerializer):
    balance = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
