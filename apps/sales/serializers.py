from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from apps.accounts.serializers import AdminKeySerializer
from apps.catalog.models import Product
from apps.common.money import ZERO
from apps.customers.models import Customer
from apps.inventory.models import InventoryMovement
from apps.sales.checkout import CheckoutError, compute_totals, price_line, settle
from apps.sales.models import Invoice, InvoiceLine, Payment, PaymentMethod, SaleReturn, SaleReturnLine
from apps.sales.services import create_sale
from apps.shop.services import get_exchange_rate


class InvoiceLineSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    returnable_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = InvoiceLine
        fields = [
            "id",
            "product",
            "product_sku",
            "product_name",
            "quantity",
            "returned_quantity",
            "returnable_quantity",
            "unit_price",
            "unit_price_afn",
            "unit_cost",
            "line_total",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "amount", "amount_afn", "method", "reference", "created_at"]
        read_only_fields = fields


class SaleReturnLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="invoice_line.product.name", read_only=True)

    class Meta:
        model = SaleReturnLine
        fields = ["invoice_line", "product_name", "quantity", "amount"]
        read_only_fields = fields


class SaleReturnSerializer(serializers.ModelSerializer):
    lines = SaleReturnLineSerializer(many=True, read_only=True)

    class Meta:
        model = SaleReturn
        fields = [
            "id",
            "refund_amount",
            "refund_amount_afn",
            "applied_to_balance",
            "applied_to_balance_afn",
            "cash_refund",
            "cash_refund_afn",
            "reason",
            "lines",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceListSerializer(serializers.ModelSerializer):
    cashier_username = serializers.CharField(source="cashier.username", read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    customer_display_id = serializers.CharField(source="customer.display_id", read_only=True, default=None)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "customer",
            "customer_name",
            "customer_display_id",
            "cashier",
            "cashier_username",
            "total",
            "total_local",
            "exchange_rate",
            "paid_amount",
            "outstanding_amount",
            "returned_amount",
            "status",
            "payment_method",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceSerializer(InvoiceListSerializer):
    lines = InvoiceLineSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)
    returns = SaleReturnSerializer(many=True, read_only=True)
    net_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    debt = serializers.SerializerMethodField()

    class Meta(InvoiceListSerializer.Meta):
        fields = InvoiceListSerializer.Meta.fields + [
            "subtotal",
            "discount_percent",
            "discount",
            "tax",
            "net_total",
            "notes",
            "lines",
            "payments",
            "returns",
            "debt",
        ]
        read_only_fields = fields

    def get_debt(self, obj):
        debt = obj.debts.order_by("created_at").first()
        if debt is None:
            return None
        return {
            "id": str(debt.id),
            "status": debt.status,
            "due_date": debt.due_date,
            "remaining_amount": debt.remaining_amount,
            "remaining_amount_afn": debt.remaining_amount_afn,
        }


class CheckoutItemSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1)


class CheckoutSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(
        queryset=Customer.objects.filter(is_active=True), required=False, allow_null=True
    )
    items = CheckoutItemSerializer(many=True)
    discount_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, default=ZERO, min_value=Decimal("0"), max_value=Decimal("100")
    )
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, default=ZERO, min_value=Decimal("0"))
    exchange_rate = serializers.DecimalField(max_digits=12, decimal_places=4, required=False, min_value=Decimal("0.0001"))
    tendered_afn = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))
    return_change = serializers.BooleanField(default=True)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_reference = serializers.CharField(required=False, allow_blank=True, max_length=120, default="")
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    debt_notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")

    def validate(self, attrs):
        items = attrs.get("items") or []
        if not items:
            raise serializers.ValidationError({"items": "The cart is empty."})

        rate = attrs.get("exchange_rate") or get_exchange_rate()
        attrs["exchange_rate"] = rate

        seen_products = set()
        priced_lines = []
        for item in items:
            product = item["product"]
            if product.id in seen_products:
                raise serializers.ValidationError({"items": "The same product cannot appear on several lines."})
            seen_products.add(product.id)
            if not product.is_active:
                raise serializers.ValidationError({"items": f"Product {product.name} is archived."})
            if InventoryMovement.current_stock(product.id) < item["quantity"]:
                raise serializers.ValidationError({"items": f"Insufficient stock for product {product.name}"})
            priced_lines.append(price_line(product, item["quantity"], rate))

        try:
            totals = compute_totals(priced_lines, attrs["discount_percent"], rate, attrs["tax"])
            settlement = settle(totals, attrs["tendered_afn"], rate, attrs["return_change"])
        except CheckoutError as exc:
            raise serializers.ValidationError({"detail": str(exc)})

        customer = attrs.get("customer")
        if settlement.is_credit_sale:
            if customer is None:
                raise serializers.ValidationError({"customer": "Credit sales require a customer."})
            due_date = attrs.get("due_date")
            if due_date is None:
                raise serializers.ValidationError({"due_date": "Credit sales require a due date."})
            if due_date < timezone.now():
                raise serializers.ValidationError({"due_date": "Due date cannot be in the past."})
        if settlement.credit_afn > 0 and customer is None:
            raise serializers.ValidationError({"customer": "Keeping change as credit requires a customer."})

        attrs["_priced_lines"] = priced_lines
        attrs["_totals"] = totals
        attrs["_settlement"] = settlement
        return attrs

    def create(self, validated_data):
        self.settlement = validated_data["_settlement"]
        return create_sale(
            cashier=self.context["request"].user,
            customer=validated_data.get("customer"),
            priced_lines=validated_data["_priced_lines"],
            totals=validated_data["_totals"],
            settlement=self.settlement,
            payment_method=validated_data["payment_method"],
            payment_reference=validated_data.get("payment_reference", ""),
            due_date=validated_data.get("due_date"),
            debt_notes=validated_data.get("debt_notes", ""),
            notes=validated_data.get("notes", ""),
        )

    def to_representation(self, instance):
        data = InvoiceSerializer(instance, context=self.context).data
        data["change_afn"] = str(self.settlement.change_afn)
        data["credit_afn"] = str(self.settlement.credit_afn)
        return data


class ReturnItemSerializer(serializers.Serializer):
    item = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class ReturnSerializer(AdminKeySerializer):
    items = ReturnItemSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class BulkDeleteInvoicesSerializer(AdminKeySerializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
