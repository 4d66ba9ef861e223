import uuid

from django.db import transaction
from rest_framework import serializers

from apps.accounts.serializers import AdminKeySerializer
from apps.catalog.models import Product
from apps.catalog.querysets import low_stock_limit
from apps.inventory.models import InventoryMovement, MovementType


class ProductSerializer(serializers.ModelSerializer):
    stock = serializers.IntegerField(required=False, write_only=True, min_value=0)
    stock_adjust_reason = serializers.CharField(write_only=True, required=False, allow_blank=True)
    is_low_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "category",
            "brand",
            "barcode",
            "location",
            "notes",
            "cost_price",
            "sale_price",
            "sale_price_afn",
            "reorder_level",
            "is_active",
            "stock",
            "stock_adjust_reason",
            "is_low_stock",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at", "is_low_stock"]

    def _current_stock(self, instance):
        request = self.context.get("request")
        if request and request.method in {"POST", "PUT", "PATCH"}:
            return InventoryMovement.current_stock(instance.id)
        current_stock = getattr(instance, "stock", None)
        if current_stock is None:
            current_stock = InventoryMovement.current_stock(instance.id)
        return current_stock

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["stock"] = self._current_stock(instance)
        return data

    def get_is_low_stock(self, obj):
        return self._current_stock(obj) <= low_stock_limit(obj.reorder_level)

    def validate_sku(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError("sku is required")
        return value

    def validate_sale_price(self, value):
        if value < 0:
            raise serializers.ValidationError("sale_price must be greater than or equal to 0")
        return value

    def validate_cost_price(self, value):
        if value < 0:
            raise serializers.ValidationError("cost_price must be greater than or equal to 0")
        return value

    def validate_sale_price_afn(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("sale_price_afn must be greater than 0 when set")
        return value

    def _create_stock_movement(self, product, target_stock, reason, reference_type):
        quantity_delta = target_stock - InventoryMovement.current_stock(product.id)
        if quantity_delta == 0:
            return

        if not reason.strip():
            raise serializers.ValidationError({"stock_adjust_reason": "A reason is required to adjust stock."})

        InventoryMovement.objects.create(
            product=product,
            movement_type=MovementType.ADJUSTMENT if reference_type == "manual_stock_adjustment" else MovementType.INBOUND,
            quantity_delta=quantity_delta,
            reference_type=reference_type,
            reference_id=str(uuid.uuid4()),
            note=reason.strip(),
            created_by=self.context["request"].user,
        )

    def create(self, validated_data):
        target_stock = validated_data.pop("stock", None)
        reason = validated_data.pop("stock_adjust_reason", "") or "Opening stock"

        with transaction.atomic():
            product = super().create(validated_data)
            if target_stock:
                self._create_stock_movement(product, target_stock, reason, "product_create")
        return product

    def update(self, instance, validated_data):
        target_stock = validated_data.pop("stock", None)
        reason = validated_data.pop("stock_adjust_reason", "")

        with transaction.atomic():
            product = super().update(instance, validated_data)
            if target_stock is not None:
                self._create_stock_movement(product, target_stock, reason, "manual_stock_adjustment")
        return product


class BulkDeleteProductsSerializer(AdminKeySerializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
