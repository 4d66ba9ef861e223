from django.contrib import admin

from apps.sales.models import Invoice, InvoiceLine, Payment, SaleReturn


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0
    readonly_fields = ("product", "quantity", "returned_quantity", "unit_price", "unit_price_afn", "unit_cost", "line_total")


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fk_name = "invoice"
    readonly_fields = ("amount", "amount_afn", "method", "reference", "created_by")


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer", "cashier", "total", "total_local", "outstanding_amount", "status", "created_at")
    list_filter = ("status", "payment_method")
    search_fields = ("invoice_number", "customer__name", "customer__display_id", "cashier__username")
    inlines = [InvoiceLineInline, PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("invoice", "customer", "method", "amount", "amount_afn", "reference", "created_at")
    list_filter = ("method",)
    search_fields = ("invoice__invoice_number", "customer__name", "reference")


@admin.register(SaleReturn)
class SaleReturnAdmin(admin.ModelAdmin):
    list_display = ("invoice", "refund_amount", "refund_amount_afn", "cash_refund_afn", "created_by", "created_at")
    search_fields = ("invoice__invoice_number",)
