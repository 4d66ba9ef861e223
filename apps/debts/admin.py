from django.contrib import admin

from apps.debts.models import DebtPayment, DebtRecord


class DebtPaymentInline(admin.TabularInline):
    model = DebtPayment
    extra = 0
    readonly_fields = ("amount", "amount_afn", "method", "reference", "notes", "created_by", "paid_at")


@admin.register(DebtRecord)
class DebtRecordAdmin(admin.ModelAdmin):
    list_display = ("customer", "source", "invoice", "remaining_amount", "remaining_amount_afn", "due_date", "status")
    list_filter = ("status", "source")
    search_fields = ("customer__name", "customer__display_id", "invoice__invoice_number")
    inlines = [DebtPaymentInline]
