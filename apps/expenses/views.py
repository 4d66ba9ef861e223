from django.db.models import Count, Sum
from rest_framework import generics, viewsets
from rest_framework.response import Response

from apps.accounts.serializers import AdminKeySerializer
from apps.accounts.services import require_admin_key
from apps.common.permissions import RolePermission
from apps.expenses.models import Expense
from apps.expenses.serializers import ExpenseSerializer
from apps.expenses.services import create_expense, delete_expense, update_expense


class ExpenseViewSet(viewsets.ModelViewSet):
    queryset = Expense.objects.select_related("created_by")
    serializer_class = ExpenseSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["expenses.view"],
        "retrieve": ["expenses.view"],
        "create": ["expenses.manage"],
        "partial_update": ["expenses.manage"],
        "update": ["expenses.manage"],
        "destroy": ["expenses.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        date_from = self.request.query_params.get("date_from")
        date_to = self.request.query_params.get("date_to")
        category = self.request.query_params.get("category")
        if date_from:
            queryset = queryset.filter(expense_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(expense_date__lte=date_to)
        if category:
            queryset = queryset.filter(category__iexact=category.strip())
        return queryset

    def perform_create(self, serializer):
        create_expense(serializer=serializer, user=self.request.user)

    def perform_update(self, serializer):
        update_expense(serializer=serializer, user=self.request.user)

    def destroy(self, request, *args, **kwargs):
        expense = self.get_object()
        key = AdminKeySerializer(data=request.data)
        key.is_valid(raise_exception=True)
        require_admin_key(user=request.user, password=key.validated_data["admin_password"], action="Deletion")
        delete_expense(expense=expense, user=request.user)
        return Response(status=204)


class ExpenseCategoryView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["expenses.view"]}

    def get(self, request, *args, **kwargs):
        rows = (
            Expense.objects.order_by()
            .values("category")
            .annotate(total_amount=Sum("amount"), items_count=Count("id"))
            .order_by("category")
        )
        return Response(list(rows))
