from django.contrib import admin

from apps.customers.models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("display_id", "name", "phone", "outstanding_balance", "outstanding_balance_afn", "is_active")
    list_filter = ("is_active",)
    search_fields = ("display_id", "name", "phone")
    readonly_fields = ("display_id", "outstanding_balance", "outstanding_balance_afn")
