from django.contrib import admin

from apps.expenses.models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("expense_date", "category", "description", "amount", "created_by")
    list_filter = ("category", "expense_date")
    search_fields = ("category", "description", "created_by__username")
    date_hierarchy = "expense_date"
