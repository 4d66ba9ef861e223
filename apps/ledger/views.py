from rest_framework import generics
from rest_framework.response import Response

from apps.accounts.services import require_admin_key
from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.ledger.models import CashEntry
from apps.ledger.serializers import CashEntrySerializer, SetBalanceSerializer
from apps.ledger.services import current_balance, set_balance


class CashBalanceView(generics.GenericAPIView):
    serializer_class = SetBalanceSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "get": ["cash.view"],
        "post": ["cash.manage"],
    }

    def get(self, request, *args, **kwargs):
        return Response({"balance": current_balance()})

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(
            user=request.user,
            password=serializer.validated_data["admin_password"],
            action="Balance update",
        )
        previous, balance = set_balance(
            balance=serializer.validated_data["balance"],
            description=serializer.validated_data.get("description", ""),
            user=request.user,
        )
        record_audit(
            actor=request.user,
            action="cash.balance.set",
            entity_type="cash_balance",
            entity_id="shop",
            details={"previous": previous, "balance": balance},
        )
        return Response({"detail": "Shop balance updated", "balance": balance})


class CashEntryListView(generics.ListAPIView):
    serializer_class = CashEntrySerializer
    permission_classes = [RolePermission]
    capability_map = {"get": ["cash.view"]}

    def get_queryset(self):
        queryset = CashEntry.objects.select_related("created_by")
        params = self.request.query_params
        if params.get("entry_type"):
            queryset = queryset.filter(entry_type=params["entry_type"].upper())
        if params.get("date_from"):
            queryset = queryset.filter(created_at__date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(created_at__date__lte=params["date_to"])
        return queryset
