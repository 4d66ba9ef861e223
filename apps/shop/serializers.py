from decimal import Decimal

from rest_framework import serializers


class ExchangeRateSerializer(serializers.Serializer):
    rate = serializers.DecimalField(max_digits=12, decimal_places=4, min_value=Decimal("0.0001"))
