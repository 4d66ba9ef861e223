from django.urls import path

from apps.shop.views import ExchangeRateView, FetchLiveRateView

urlpatterns = [
    path("exchange-rate/", ExchangeRateView.as_view(), name="exchange-rate"),
    path("fetch-live-rate/", FetchLiveRateView.as_view(), name="fetch-live-rate"),
]
