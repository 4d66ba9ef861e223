from rest_framework import generics
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.shop.serializers import ExchangeRateSerializer
from apps.shop.services import LiveRateUnavailable, fetch_live_rate, get_exchange_rate, set_exchange_rate


class ExchangeRateView(generics.GenericAPIView):
    serializer_class = ExchangeRateSerializer
    permission_classes = [RolePermission]
    capability_map = {"post": ["settings.manage"]}

    def get(self, request, *args, **kwargs):
        return Response({"rate": get_exchange_rate()})

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rate = set_exchange_rate(rate=serializer.validated_data["rate"], user=request.user)
        return Response({"detail": "Exchange rate updated", "rate": rate})


class FetchLiveRateView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"post": ["settings.manage"]}

    def post(self, request, *args, **kwargs):
        try:
            market_rate, adjusted_rate = fetch_live_rate()
        except LiveRateUnavailable as exc:
            return Response({"code": "live_rate_unavailable", "detail": str(exc), "fields": {}}, status=502)
        return Response(
            {
                "rate": adjusted_rate,
                "market_rate": market_rate,
                "detail": f"Retrieved market rate ({market_rate:.2f}) and added margin.",
            }
        )
