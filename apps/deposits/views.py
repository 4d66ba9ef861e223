from decimal import Decimal

from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.deposits.models import CustomerDeposit, DepositStatus
from apps.deposits.serializers import (
    CustomerDepositSerializer,
    DepositCreateSerializer,
    DepositWithdrawalSerializer,
    WithdrawSerializer,
)
from apps.deposits.services import create_deposit, withdraw


def _afn_sum(field):
    return Coalesce(Sum(field), Value(Decimal("0.00")), output_field=DecimalField(max_digits=16, decimal_places=2))


class CustomerDepositViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = CustomerDepositSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["deposits.view"],
        "retrieve": ["deposits.view"],
        "create": ["deposits.manage"],
        "withdraw": ["deposits.manage"],
        "summary": ["deposits.view"],
    }

    def get_queryset(self):
        queryset = CustomerDeposit.objects.select_related("customer").prefetch_related("withdrawals")
        params = self.request.query_params
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"].upper())
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = DepositCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deposit = create_deposit(user=request.user, **serializer.validated_data)
        return Response(self.get_serializer(deposit).data, status=201)

    @action(detail=True, methods=["post"])
    def withdraw(self, request, pk=None):
        serializer = WithdrawSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deposit, withdrawal = withdraw(deposit=self.get_object(), user=request.user, **serializer.validated_data)
        deposit.refresh_from_db()
        return Response(
            {
                "deposit": self.get_serializer(deposit).data,
                "withdrawal": DepositWithdrawalSerializer(withdrawal).data,
            }
        )

    @action(detail=False, methods=["get"])
    def summary(self, request):
        totals = CustomerDeposit.objects.aggregate(
            total_active_afn=_afn_sum("remaining_amount_afn"),
            total_withdrawn_afn=_afn_sum("withdrawn_amount_afn"),
            total_deposits=Count("id"),
        )
        by_status = {
            row["status"]: row["count"]
            for row in CustomerDeposit.objects.order_by().values("status").annotate(count=Count("id"))
        }
        return Response(
            {
                **totals,
                "status_counts": {status: by_status.get(status, 0) for status in DepositStatus.values},
            }
        )
