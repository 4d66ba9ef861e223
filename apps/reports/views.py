from rest_framework import generics
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.reports import services
from apps.reports.serializers import DateRangeQuerySerializer, PeriodQuerySerializer
from apps.shop.services import get_exchange_rate


class ReportView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["reports.view"]}


class DashboardView(ReportView):
    def get(self, request, *args, **kwargs):
        return Response(services.dashboard(get_exchange_rate()))


class PeriodReportView(ReportView):
    def get(self, request, *args, **kwargs):
        query = PeriodQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        return Response(services.period_report(data["type"], data["year"], data.get("month")))


class SalesReportView(ReportView):
    def get(self, request, *args, **kwargs):
        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        return Response(services.sales_report(data.get("date_from"), data.get("date_to"), data["top_limit"]))


class AgingReportView(ReportView):
    def get(self, request, *args, **kwargs):
        return Response(services.aging_report())


class InventoryValuationView(ReportView):
    def get(self, request, *args, **kwargs):
        return Response(services.inventory_valuation(get_exchange_rate()))
