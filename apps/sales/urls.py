from rest_framework.routers import DefaultRouter

from apps.sales.views import InvoiceViewSet

router = DefaultRouter()
router.register("sales", InvoiceViewSet, basename="sale")

urlpatterns = router.urls
