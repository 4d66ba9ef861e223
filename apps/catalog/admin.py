from django.contrib import admin

from apps.catalog.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "sale_price", "sale_price_afn", "cost_price", "reorder_level", "is_active")
    list_filter = ("is_active", "category")
    search_fields = ("sku", "name", "barcode", "brand")
