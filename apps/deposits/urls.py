from rest_framework.routers import DefaultRouter

from apps.deposits.views import CustomerDepositViewSet

router = DefaultRouter()
router.register("deposits", CustomerDepositViewSet, basename="deposit")

urlpatterns = router.urls
