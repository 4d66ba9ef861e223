from django.urls import path

from apps.ledger.views import CashBalanceView, CashEntryListView

urlpatterns = [
    path("balance/", CashBalanceView.as_view(), name="cash-balance"),
    path("entries/", CashEntryListView.as_view(), name="cash-entries"),
]
