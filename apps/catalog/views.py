from django.db import transaction
from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.models import UserRole
from apps.accounts.services import require_admin_key
from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.querysets import low_stock, with_stock
from apps.catalog.serializers import BulkDeleteProductsSerializer, ProductSerializer
from apps.common.permissions import RolePermission, resolve_role
from apps.inventory.models import InventoryMovement


def _product_snapshot(product, stock=None):
    return {
        "sku": product.sku,
        "name": product.name,
        "sale_price": str(product.sale_price),
        "sale_price_afn": str(product.sale_price_afn) if product.sale_price_afn is not None else None,
        "cost_price": str(product.cost_price),
        "stock": stock if stock is not None else InventoryMovement.current_stock(product.id),
        "is_active": product.is_active,
    }


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
        "toggle_status": ["catalog.manage"],
        "bulk_delete": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = with_stock(Product.objects.all())
        params = self.request.query_params

        query = params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(
                Q(name__icontains=query) | Q(sku__icontains=query) | Q(barcode=query) | Q(brand__icontains=query)
            )

        category = params.get("category")
        if category:
            queryset = queryset.filter(category__iexact=category.strip())

        status = (params.get("status") or "").strip().lower()
        if status == "active":
            queryset = queryset.filter(is_active=True)
        elif status == "archived":
            queryset = queryset.filter(is_active=False)

        only_low = params.get("low_stock")
        if only_low and only_low.strip().lower() in {"1", "true", "yes"}:
            queryset = low_stock(queryset)
        return queryset

    def perform_create(self, serializer):
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.create",
            entity_type="product",
            entity_id=product.id,
            details=_product_snapshot(product),
        )

    def perform_update(self, serializer):
        old_product = self.get_object()
        before = _product_snapshot(old_product, getattr(old_product, "stock", None))
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.update",
            entity_type="product",
            entity_id=product.id,
            details={"before": before, "after": _product_snapshot(product)},
        )

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        if product.movements.exists():
            return Response(
                {
                    "code": "product_in_use",
                    "detail": "Product has stock history. Archive it instead of deleting it.",
                    "fields": {},
                },
                status=400,
            )
        return super().destroy(request, *args, **kwargs)

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="catalog.product.delete",
            entity_type="product",
            entity_id=instance.id,
            details=_product_snapshot(instance, getattr(instance, "stock", None)),
        )
        super().perform_destroy(instance)

    @action(detail=True, methods=["post"], url_path="toggle-status")
    def toggle_status(self, request, pk=None):
        product = self.get_object()
        product.is_active = not product.is_active
        product.save(update_fields=["is_active", "updated_at"])
        record_audit(
            actor=request.user,
            action="catalog.product.toggle_status",
            entity_type="product",
            entity_id=product.id,
            details={"is_active": product.is_active},
        )
        return Response(self.get_serializer(product).data)

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        if resolve_role(request.user) != UserRole.ADMIN:
            return Response(
                {"code": "forbidden", "detail": "Only administrators can bulk delete products.", "fields": {}},
                status=403,
            )
        serializer = BulkDeleteProductsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(
            user=request.user,
            password=serializer.validated_data["admin_password"],
            action="Bulk deletion",
        )
        ids = serializer.validated_data["ids"]
        deleted, skipped = [], []
        with transaction.atomic():
            for product in Product.objects.select_for_update().filter(pk__in=ids):
                if product.movements.exists() or product.invoice_lines.exists():
                    skipped.append(str(product.id))
                    continue
                deleted.append(product.sku)
                product.delete()
            record_audit(
                actor=request.user,
                action="catalog.product.bulk_delete",
                entity_type="product",
                entity_id="BULK",
                details={"requested": len(ids), "deleted": deleted, "skipped": skipped},
            )
        return Response({"deleted": len(deleted), "skipped_ids": skipped})
