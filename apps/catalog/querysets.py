from django.conf import settings
from django.db.models import F, IntegerField, OuterRef, Q, Subquery, Sum, Value
from django.db.models.functions import Coalesce

from apps.inventory.models import InventoryMovement


def with_stock(queryset):
    stock_subquery = (
        InventoryMovement.objects.filter(product_id=OuterRef("pk"))
        .values("product_id")
        .annotate(total=Sum("quantity_delta"))
        .values("total")
    )
    return queryset.annotate(
        stock=Coalesce(Subquery(stock_subquery, output_field=IntegerField()), Value(0)),
    )


def low_stock_limit(reorder_level, threshold=None):
    """A product's own reorder level, or the shop-wide threshold when it has none."""
    if reorder_level:
        return reorder_level
    return settings.POS_LOW_STOCK_THRESHOLD if threshold is None else threshold


def low_stock(queryset, threshold=None):
    """Filter a ``with_stock`` queryset down to products that need reordering."""
    threshold = settings.POS_LOW_STOCK_THRESHOLD if threshold is None else threshold
    return queryset.filter(
        Q(reorder_level__gt=0, stock__lte=F("reorder_level")) | Q(reorder_level=0, stock__lte=threshold)
    )
