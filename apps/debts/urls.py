from rest_framework.routers import DefaultRouter

from apps.debts.views import DebtRecordViewSet

router = DefaultRouter()
router.register("debts", DebtRecordViewSet, basename="debt")

urlpatterns = router.urls
