from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.expenses.views import ExpenseCategoryView, ExpenseViewSet

router = DefaultRouter()
router.register("expenses", ExpenseViewSet, basename="expense")

urlpatterns = [
    path("expenses/categories/", ExpenseCategoryView.as_view(), name="expense-categories"),
]
urlpatterns += router.urls
