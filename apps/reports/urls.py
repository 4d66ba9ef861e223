from django.urls import path

from apps.reports.views import AgingReportView, DashboardView, InventoryValuationView, PeriodReportView, SalesReportView

urlpatterns = [
    path("dashboard/", DashboardView.as_view(), name="report-dashboard"),
    path("period/", PeriodReportView.as_view(), name="report-period"),
    path("sales/", SalesReportView.as_view(), name="report-sales"),
    path("aging/", AgingReportView.as_view(), name="report-aging"),
    path("inventory-valuation/", InventoryValuationView.as_view(), name="report-inventory-valuation"),
]
