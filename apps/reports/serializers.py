from rest_framework import serializers


class DateRangeQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    top_limit = serializers.IntegerField(required=False, min_value=1, max_value=50, default=10)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs


class PeriodQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["monthly", "yearly"], default="monthly")
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)

    def validate(self, attrs):
        if attrs["type"] == "monthly" and not attrs.get("month"):
            raise serializers.ValidationError({"month": "month is required for a monthly report."})
        return attrs
