import uuid

from django.db.models import Sum
from rest_framework import generics, mixins, viewsets
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.querysets import low_stock, low_stock_limit, with_stock
from apps.common.permissions import RolePermission
from apps.inventory.models import InventoryMovement, MovementType
from apps.inventory.serializers import InventoryMovementSerializer


class InventoryMovementViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = InventoryMovement.objects.select_related("product", "created_by")
    serializer_class = InventoryMovementSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["inventory.view"],
        "retrieve": ["inventory.view"],
        "create": ["inventory.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        product_id = self.request.query_params.get("product")
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        movement_type = self.request.query_params.get("movement_type")
        if movement_type:
            queryset = queryset.filter(movement_type=movement_type.upper())
        return queryset

    def perform_create(self, serializer):
        movement = serializer.save(reference_type="manual", reference_id=str(uuid.uuid4()))
        action = "inventory.adjustment.create" if movement.movement_type == MovementType.ADJUSTMENT else "inventory.movement.create"
        record_audit(
            actor=self.request.user,
            action=action,
            entity_type="inventory_movement",
            entity_id=movement.id,
            details={
                "product_id": str(movement.product_id),
                "movement_type": movement.movement_type,
                "quantity_delta": movement.quantity_delta,
                "note": movement.note,
            },
        )


class InventoryStockView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["inventory.view"]}

    def get(self, request, *args, **kwargs):
        product_id = request.query_params.get("product")
        queryset = InventoryMovement.objects.all()
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        queryset = queryset.values("product_id", "product__sku", "product__name").annotate(stock=Sum("quantity_delta"))
        return Response(list(queryset.order_by("product__name")))


class LowStockView(generics.GenericAPIView):
    """Active products at or below their reorder level (or the shop-wide threshold when none is set)."""

    permission_classes = [RolePermission]
    capability_map = {"get": ["inventory.view"]}

    def get(self, request, *args, **kwargs):
        products = low_stock(with_stock(Product.objects.filter(is_active=True))).order_by("stock", "name")
        return Response(
            [
                {
                    "id": str(product.id),
                    "sku": product.sku,
                    "name": product.name,
                    "stock": product.stock,
                    "reorder_level": low_stock_limit(product.reorder_level),
                }
                for product in products
            ]
        )
