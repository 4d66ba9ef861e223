from rest_framework import serializers

from apps.inventory.models import InventoryMovement, MovementType


class InventoryMovementSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = InventoryMovement
        fields = [
            "id",
            "product",
            "product_sku",
            "product_name",
            "movement_type",
            "quantity_delta",
            "reference_type",
            "reference_id",
            "note",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = ["id", "reference_type", "reference_id", "created_by", "created_at"]

    def validate_movement_type(self, value):
        if value not in (MovementType.INBOUND, MovementType.ADJUSTMENT):
            raise serializers.ValidationError("Only INBOUND and ADJUSTMENT movements can be recorded by hand.")
        return value

    def validate(self, attrs):
        if attrs["movement_type"] == MovementType.INBOUND and attrs["quantity_delta"] <= 0:
            raise serializers.ValidationError({"quantity_delta": "Inbound quantity must be greater than 0."})
        if attrs["movement_type"] == MovementType.ADJUSTMENT and not attrs.get("note", "").strip():
            raise serializers.ValidationError({"note": "A reason is required for adjustments."})
        if attrs["quantity_delta"] < 0:
            available = InventoryMovement.current_stock(attrs["product"].id)
            if available + attrs["quantity_delta"] < 0:
                raise serializers.ValidationError({"quantity_delta": "Insufficient stock."})
        return attrs

    def create(self, validated_data):
        validated_data["created_by"] = self.context["request"].user
        return super().create(validated_data)
