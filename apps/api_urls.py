from django.urls import include, path

urlpatterns = [
    path("", include("apps.accounts.urls")),
    path("settings/", include("apps.shop.urls")),
    path("cash/", include("apps.ledger.urls")),
    path("inventory/", include("apps.inventory.urls")),
    path("reports/", include("apps.reports.urls")),
    path("", include("apps.catalog.urls")),
    path("", include("apps.customers.urls")),
    path("", include("apps.sales.urls")),
    path("", include("apps.debts.urls")),
    path("", include("apps.deposits.urls")),
    path("", include("apps.expenses.urls")),
    path("", include("apps.audit.urls")),
]
