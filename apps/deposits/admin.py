from django.contrib import admin

from apps.deposits.models import CustomerDeposit, DepositWithdrawal


class DepositWithdrawalInline(admin.TabularInline):
    model = DepositWithdrawal
    extra = 0
    readonly_fields = ("amount_afn", "notes", "created_by", "withdrawn_at")


@admin.register(CustomerDeposit)
class CustomerDepositAdmin(admin.ModelAdmin):
    list_display = ("deposit_number", "customer", "original_amount_afn", "remaining_amount_afn", "status", "deposited_at")
    list_filter = ("status",)
    search_fields = ("deposit_number", "customer__name", "customer__display_id")
    inlines = [DepositWithdrawalInline]
