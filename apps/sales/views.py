from django.db.models import Q
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.models import UserRole
from apps.accounts.serializers import AdminKeySerializer
from apps.accounts.services import require_admin_key
from apps.common.permissions import RolePermission, resolve_role
from apps.sales.models import Invoice
from apps.sales.serializers import (
    BulkDeleteInvoicesSerializer,
    CheckoutSerializer,
    InvoiceListSerializer,
    InvoiceSerializer,
    ReturnSerializer,
    SaleReturnSerializer,
)
from apps.sales.services import bulk_delete_invoices, delete_all_invoices, delete_invoice, process_return


class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["sales.view"],
        "retrieve": ["sales.view"],
        "create": ["sales.create"],
        "destroy": ["sales.manage"],
        "sale_return": ["sales.manage"],
        "bulk_delete": ["sales.manage"],
        "delete_all": ["sales.manage"],
    }

    def get_serializer_class(self):
        if self.action == "list":
            return InvoiceListSerializer
        if self.action == "create":
            return CheckoutSerializer
        return InvoiceSerializer

    def get_queryset(self):
        queryset = Invoice.objects.select_related("cashier", "customer")
        if self.action == "retrieve":
            queryset = queryset.prefetch_related("lines__product", "payments", "returns__lines__invoice_line__product")
        params = self.request.query_params

        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"].upper())
        if params.get("date_from"):
            queryset = queryset.filter(created_at__date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(created_at__date__lte=params["date_to"])

        query = params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(Q(invoice_number__icontains=query) | Q(customer__name__icontains=query))
        return queryset.order_by("-created_at")

    def destroy(self, request, *args, **kwargs):
        invoice = self.get_object()
        key = AdminKeySerializer(data=request.data)
        key.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=key.validated_data["admin_password"], action="Deletion")
        delete_invoice(invoice=invoice, user=request.user)
        return Response(status=204)

    @action(detail=True, methods=["post"], url_path="return")
    def sale_return(self, request, pk=None):
        invoice = self.get_object()
        serializer = ReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=serializer.validated_data["admin_password"], action="Return")
        sale_return = process_return(
            invoice=invoice,
            items=[(item["item"], item["quantity"]) for item in serializer.validated_data["items"]],
            reason=serializer.validated_data.get("reason", ""),
            user=request.user,
        )
        invoice.refresh_from_db()
        return Response(
            {
                "return": SaleReturnSerializer(sale_return).data,
                "invoice": InvoiceSerializer(invoice, context=self.get_serializer_context()).data,
            },
            status=201,
        )

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        serializer = BulkDeleteInvoicesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(
            user=request.user,
            password=serializer.validated_data["admin_password"],
            action="Bulk deletion",
        )
        deleted = bulk_delete_invoices(ids=serializer.validated_data["ids"], user=request.user)
        return Response({"deleted": deleted})

    @action(detail=False, methods=["post"], url_path="delete-all")
    def delete_all(self, request):
        if resolve_role(request.user) != UserRole.ADMIN:
            return Response(
                {"code": "forbidden", "detail": "Only administrators can delete all sales.", "fields": {}},
                status=403,
            )
        key = AdminKeySerializer(data=request.data)
        key.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=key.validated_data["admin_password"], action="Delete all")
        deleted = delete_all_invoices(user=request.user)
        return Response({"deleted": deleted})
