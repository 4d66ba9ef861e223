from django.contrib.auth import password_validation
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from apps.accounts.models import User


class AdminKeySerializer(serializers.Serializer):
    admin_password = serializers.CharField(write_only=True, trim_whitespace=False)


def _check_email_free(value, instance=None):
    value = value.strip()
    if value:
        taken = User.objects.filter(email__iexact=value)
        if instance is not None:
            taken = taken.exclude(pk=instance.pk)
        if taken.exists():
            raise serializers.ValidationError("Email already in use.")
    return value


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, trim_whitespace=False)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "first_name",
            "last_name",
            "email",
            "role",
            "is_active",
            "password",
            "date_joined",
            "last_login",
        ]
        read_only_fields = ["id", "date_joined", "last_login"]

    def validate_email(self, value):
        return _check_email_free(value, self.instance)

    def validate(self, attrs):
        if self.instance is None:
            password = attrs.get("password")
            if not password:
                raise serializers.ValidationError({"password": "This field is required."})
            candidate = User(**{key: value for key, value in attrs.items() if key != "password"})
            try:
                password_validation.validate_password(password, candidate)
            except DjangoValidationError as exc:
                raise serializers.ValidationError({"password": list(exc.messages)}) from None
        elif "password" in attrs:
            raise serializers.ValidationError({"password": "Use the set-password endpoint to change passwords."})
        return attrs


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "email", "role"]
        read_only_fields = ["id", "username", "role"]

    def validate_email(self, value):
        return _check_email_free(value, self.instance)


class SetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate_password(self, value):
        password_validation.validate_password(value, self.context.get("user"))
        return value


class ChangePasswordSerializer(SetPasswordSerializer):
    current_password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate_current_password(self, value):
        if not self.context["user"].check_password(value):
            raise serializers.ValidationError("Current password is incorrect.")
        return value
