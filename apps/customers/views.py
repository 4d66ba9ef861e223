from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.serializers import AdminKeySerializer
from apps.accounts.services import require_admin_key
from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError
from apps.common.permissions import RolePermission
from apps.customers.models import Customer
from apps.customers.serializers import (
    BulkDeleteSerializer,
    CustomerDetailSerializer,
    CustomerSerializer,
    ReceivePaymentSerializer,
)
from apps.customers.services import delete_customer, generate_display_id, receive_customer_payment
from apps.shop.services import get_exchange_rate


class CustomerViewSet(viewsets.ModelViewSet):
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["customers.view"],
        "retrieve": ["customers.view"],
        "create": ["customers.manage"],
        "update": ["customers.manage"],
        "partial_update": ["customers.manage"],
        "destroy": ["customers.manage"],
        "toggle_status": ["customers.manage"],
        "payment": ["debts.collect"],
        "bulk_delete": ["customers.manage"],
    }

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CustomerDetailSerializer
        return CustomerSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["exchange_rate"] = get_exchange_rate()
        return context

    def get_queryset(self):
        queryset = Customer.objects.all()
        params = self.request.query_params

        status = (params.get("status") or "active").strip().lower()
        if status == "active":
            queryset = queryset.filter(is_active=True)
        elif status == "archived":
            queryset = queryset.filter(is_active=False)

        query = params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(
                Q(name__icontains=query) | Q(phone__icontains=query) | Q(display_id__iexact=query)
            )
        return queryset

    def perform_create(self, serializer):
        customer = serializer.save(display_id=generate_display_id())
        record_audit(
            actor=self.request.user,
            action="customer.create",
            entity_type="customer",
            entity_id=customer.id,
            details={"display_id": customer.display_id, "name": customer.name},
        )

    def perform_update(self, serializer):
        customer = serializer.save()
        record_audit(
            actor=self.request.user,
            action="customer.update",
            entity_type="customer",
            entity_id=customer.id,
            details={key: value for key, value in serializer.validated_data.items()},
        )

    def destroy(self, request, *args, **kwargs):
        customer = self.get_object()
        key = AdminKeySerializer(data=request.data)
        key.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=key.validated_data["admin_password"], action="Deletion")
        delete_customer(customer=customer, user=request.user)
        return Response(status=204)

    @action(detail=True, methods=["post"], url_path="toggle-status")
    def toggle_status(self, request, pk=None):
        customer = self.get_object()
        customer.is_active = not customer.is_active
        customer.save(update_fields=["is_active", "updated_at"])
        record_audit(
            actor=request.user,
            action="customer.toggle_status",
            entity_type="customer",
            entity_id=customer.id,
            details={"is_active": customer.is_active},
        )
        return Response(self.get_serializer(customer).data)

    @action(detail=True, methods=["post"])
    def payment(self, request, pk=None):
        customer = self.get_object()
        serializer = ReceivePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment, customer, allocations = receive_customer_payment(
            customer=customer,
            amount_afn=data["amount_afn"],
            exchange_rate=data.get("exchange_rate") or get_exchange_rate(),
            method=data["method"],
            reference=data.get("reference", ""),
            user=request.user,
        )
        return Response(
            {
                "payment_id": str(payment.id),
                "amount": payment.amount,
                "amount_afn": payment.amount_afn,
                "allocations": allocations,
                "customer": CustomerSerializer(customer, context=self.get_serializer_context()).data,
            },
            status=201,
        )

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        serializer = BulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(
            user=request.user,
            password=serializer.validated_data["admin_password"],
            action="Bulk deletion",
        )
        deleted, failed = [], []
        customers = {c.id: c for c in Customer.objects.filter(pk__in=serializer.validated_data["ids"])}
        for customer_id in serializer.validated_data["ids"]:
            customer = customers.get(customer_id)
            if customer is None:
                failed.append({"id": str(customer_id), "detail": "Customer not found."})
                continue
            try:
                delete_customer(customer=customer, user=request.user)
            except BusinessRuleError as exc:
                failed.append({"id": str(customer_id), "detail": str(exc.detail)})
                continue
            deleted.append(str(customer_id))
        return Response({"deleted": deleted, "failed": failed})
