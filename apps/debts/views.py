from decimal import Decimal

from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.serializers import AdminKeySerializer
from apps.accounts.services import require_admin_key
from apps.common.money import round_afn
from apps.common.permissions import RolePermission
from apps.customers.models import Customer
from apps.debts.models import DebtRecord, DebtStatus
from apps.debts.serializers import (
    DebtPaymentCreateSerializer,
    DebtPaymentSerializer,
    DebtRecordSerializer,
    LendSerializer,
)
from apps.debts.services import delete_debt, lend, record_debt_payment, refresh_statuses, update_debt
from apps.shop.services import get_exchange_rate


class DebtRecordViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = DebtRecordSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["debts.view"],
        "retrieve": ["debts.view"],
        "partial_update": ["debts.manage"],
        "update": ["debts.manage"],
        "destroy": ["debts.manage"],
        "payments": ["debts.collect"],
        "lend": ["debts.manage"],
        "debtors": ["debts.view"],
        "summary": ["debts.view"],
        "batch_update_status": ["debts.manage"],
    }

    def get_queryset(self):
        queryset = DebtRecord.objects.select_related("customer", "invoice").prefetch_related("payments")
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"].upper())
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("source"):
            queryset = queryset.filter(source=params["source"].upper())
        return queryset

    def list(self, request, *args, **kwargs):
        refresh_statuses()
        return super().list(request, *args, **kwargs)

    def perform_update(self, serializer):
        serializer.instance = update_debt(debt=serializer.instance, user=self.request.user, **serializer.validated_data)

    def destroy(self, request, *args, **kwargs):
        debt = self.get_object()
        key = AdminKeySerializer(data=request.data)
        key.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=key.validated_data["admin_password"], action="Deletion")
        delete_debt(debt=debt, user=request.user)
        return Response(status=204)

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):
        debt = self.get_object()
        if request.method == "GET":
            return Response(DebtPaymentSerializer(debt.payments.all(), many=True).data)

        serializer = DebtPaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        debt_payment = record_debt_payment(debt=debt, user=request.user, **serializer.validated_data)
        debt.refresh_from_db()
        return Response(
            {
                "payment": DebtPaymentSerializer(debt_payment).data,
                "debt": self.get_serializer(debt).data,
            },
            status=201,
        )

    @action(detail=False, methods=["post"])
    def lend(self, request):
        serializer = LendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        debt = lend(
            customer=data["customer"],
            amount_afn=data["amount_afn"],
            exchange_rate=data.get("exchange_rate") or get_exchange_rate(),
            due_date=data.get("due_date"),
            notes=data.get("notes", ""),
            user=request.user,
        )
        return Response(self.get_serializer(debt).data, status=201)

    @action(detail=False, methods=["get"])
    def debtors(self, request):
        refresh_statuses()
        rate = get_exchange_rate()
        customers = (
            Customer.objects.filter(
                pk__in=DebtRecord.objects.filter(remaining_amount_afn__gt=0).values("customer_id")
            )
            .annotate(
                open_debts=Count("debts", filter=Q(debts__remaining_amount_afn__gt=0), distinct=True),
                overdue_count=Count("debts", filter=Q(debts__status=DebtStatus.OVERDUE), distinct=True),
                due_soon_count=Count("debts", filter=Q(debts__status=DebtStatus.DUE_SOON), distinct=True),
            )
            .order_by("name")
        )
        return Response(
            [
                {
                    "id": str(customer.id),
                    "display_id": customer.display_id,
                    "name": customer.name,
                    "phone": customer.phone,
                    "outstanding_balance": customer.outstanding_balance,
                    "outstanding_balance_afn": customer.displayed_balance_afn(rate),
                    "balance_afn_is_fixed": customer.balance_afn_is_fixed,
                    "open_debts": customer.open_debts,
                    "overdue_count": customer.overdue_count,
                    "due_soon_count": customer.due_soon_count,
                }
                for customer in customers
            ]
        )

    @action(detail=False, methods=["get"])
    def summary(self, request):
        refresh_statuses()
        open_debts = DebtRecord.objects.filter(remaining_amount_afn__gt=0)
        totals = open_debts.aggregate(
            total_outstanding=Coalesce(Sum("remaining_amount"), Value(Decimal("0.00")), output_field=DecimalField(max_digits=16, decimal_places=2)),
            total_outstanding_afn=Coalesce(Sum("remaining_amount_afn"), Value(Decimal("0.00")), output_field=DecimalField(max_digits=16, decimal_places=2)),
            debtor_count=Count("customer", distinct=True),
        )
        by_status = {
            row["status"]: row["count"]
            for row in DebtRecord.objects.order_by().values("status").annotate(count=Count("id"))
        }
        return Response(
            {
                "total_outstanding": totals["total_outstanding"],
                "total_outstanding_afn": round_afn(totals["total_outstanding_afn"]),
                "debtor_count": totals["debtor_count"],
                "status_counts": {status: by_status.get(status, 0) for status in DebtStatus.values},
            }
        )

    @action(detail=False, methods=["post"], url_path="batch-update-status")
    def batch_update_status(self, request):
        return Response({"updated": refresh_statuses()})
