from rest_framework import generics, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.models import User
from apps.accounts.serializers import (
    AdminKeySerializer,
    ChangePasswordSerializer,
    ProfileSerializer,
    SetPasswordSerializer,
    UserSerializer,
)
from apps.accounts.services import (
    create_user,
    delete_user,
    require_admin_key,
    set_user_password,
    update_user,
)
from apps.common.permissions import IsAdminRole, resolve_role


class VerifyAdminKeyView(generics.GenericAPIView):
    serializer_class = AdminKeySerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_admin_key(
            user=request.user,
            password=serializer.validated_data["admin_password"],
            action="Operation",
        )
        return Response({"valid": True})


class MeView(generics.GenericAPIView):
    serializer_class = ProfileSerializer

    def _payload(self, user):
        data = self.get_serializer(user).data
        data["role"] = resolve_role(user)
        return data

    def get(self, request, *args, **kwargs):
        return Response(self._payload(request.user))

    def patch(self, request, *args, **kwargs):
        serializer = self.get_serializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = update_user(user=request.user, actor=request.user, **serializer.validated_data)
        return Response(self._payload(user))


class ChangePasswordView(generics.GenericAPIView):
    serializer_class = ChangePasswordSerializer

    def get_serializer_context(self):
        return {**super().get_serializer_context(), "user": self.request.user}

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        set_user_password(user=request.user, password=serializer.validated_data["password"], actor=request.user)
        return Response({"detail": "Password updated successfully."})


class UserViewSet(viewsets.ModelViewSet):
    serializer_class = UserSerializer
    permission_classes = [IsAdminRole]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        queryset = User.objects.order_by("-date_joined")
        params = self.request.query_params
        if params.get("role"):
            queryset = queryset.filter(role=params["role"].upper())
        if params.get("q"):
            queryset = queryset.filter(username__icontains=params["q"].strip())
        return queryset

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        password = data.pop("password")
        serializer.instance = create_user(password=password, actor=self.request.user, **data)

    def perform_update(self, serializer):
        serializer.instance = update_user(user=serializer.instance, actor=self.request.user, **serializer.validated_data)

    def perform_destroy(self, instance):
        delete_user(user=instance, actor=self.request.user)

    @action(detail=True, methods=["post"], url_path="set-password")
    def set_password(self, request, pk=None):
        user = self.get_object()
        serializer = SetPasswordSerializer(data=request.data, context={"user": user})
        serializer.is_valid(raise_exception=True)
        set_user_password(user=user, password=serializer.validated_data["password"], actor=request.user)
        return Response({"detail": "User password reset successfully."})
