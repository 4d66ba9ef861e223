from django.contrib import admin

from apps.ledger.models import CashEntry


@admin.register(CashEntry)
class CashEntryAdmin(admin.ModelAdmin):
    list_display = ("entry_type", "amount_afn", "reference_type", "reference_id", "description", "created_by", "created_at")
    search_fields = ("reference_type", "reference_id", "description")
    list_filter = ("entry_type",)
