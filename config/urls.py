from django.contrib import admin
from django.urls import include, path

from apps.common.views import HealthView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", HealthView.as_view(), name="health"),
    path("api/v1/", include("apps.api_urls")),
]
