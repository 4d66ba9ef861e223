from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.accounts.views import ChangePasswordView, MeView, UserViewSet, VerifyAdminKeyView

router = DefaultRouter()
router.register("users", UserViewSet, basename="user")

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("auth/me/", MeView.as_view(), name="auth-me"),
    path("auth/me/password/", ChangePasswordView.as_view(), name="auth-change-password"),
    path("auth/verify-admin-key/", VerifyAdminKeyView.as_view(), name="verify-admin-key"),
] + router.urls
