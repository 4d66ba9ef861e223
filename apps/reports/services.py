from calendar import month_name, monthrange
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.catalog.models import Product
from apps.catalog.querysets import low_stock, with_stock
from apps.common.money import ZERO, round_afn, round_usd
from apps.customers.models import Customer
from apps.debts.models import DebtRecord
from apps.expenses.models import Expense
from apps.sales.models import Invoice, InvoiceLine, Payment


def _money(expression):
    return Coalesce(expression, Value(Decimal("0.00")), output_field=DecimalField(max_digits=16, decimal_places=2))


def _net_total():
    return ExpressionWrapper(F("total") - F("returned_amount"), output_field=DecimalField(max_digits=16, decimal_places=2))


def _net_total_afn():
    return ExpressionWrapper(
        F("total_local") - F("returned_amount") * F("exchange_rate"),
        output_field=DecimalField(max_digits=18, decimal_places=2),
    )


def _kept_cost():
    return ExpressionWrapper(
        (F("quantity") - F("returned_quantity")) * F("unit_cost"),
        output_field=DecimalField(max_digits=16, decimal_places=2),
    )


def _kept_revenue():
    return ExpressionWrapper(
        (F("quantity") - F("returned_quantity")) * F("unit_price"),
        output_field=DecimalField(max_digits=16, decimal_places=2),
    )


def invoices_between(date_from=None, date_to=None):
    queryset = Invoice.objects.all()
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)
    return queryset


def expenses_between(date_from=None, date_to=None):
    queryset = Expense.objects.all()
    if date_from:
        queryset = queryset.filter(expense_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(expense_date__lte=date_to)
    return queryset


def outstanding_credit_afn(rate):
    total = ZERO
    for customer in Customer.objects.filter(Q(outstanding_balance__gt=0) | Q(outstanding_balance_afn__gt=0)):
        total += customer.displayed_balance_afn(rate)
    return round_afn(total)


def low_stock_products(threshold=None):
    products = low_stock(with_stock(Product.objects.filter(is_active=True)), threshold).order_by("stock", "name")
    return [
        {"id": str(product.id), "sku": product.sku, "name": product.name, "stock": product.stock}
        for product in products
    ]


def dashboard(rate, today=None):
    today = today or timezone.localdate()
    invoices = invoices_between(today, today)
    totals = invoices.aggregate(sales_afn=_money(Sum(_net_total_afn())), invoice_count=Count("id"))
    return {
        "date": today,
        "today_sales_afn": round_afn(totals["sales_afn"]),
        "today_invoice_count": totals["invoice_count"],
        "low_stock": low_stock_products(),
        "outstanding_credit_afn": outstanding_credit_afn(rate),
        "exchange_rate": rate,
    }


def period_bounds(period_type, year, month=None):
    if period_type == "monthly":
        last_day = monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last_day), f"{month_name[month]} {year}"
    return date(year, 1, 1), date(year, 12, 31), str(year)


def period_report(period_type, year, month=None):
    """Profit and loss for a calendar month or year.

    Sales are net of returns and COGS only counts units the customer kept,
    valued at the cost snapshot taken when the line was sold.
    """
    date_from, date_to, label = period_bounds(period_type, year, month)
    invoices = invoices_between(date_from, date_to)
    sales = invoices.aggregate(total_sales=_money(Sum(_net_total())), invoice_count=Count("id"))
    cogs = InvoiceLine.objects.filter(invoice__in=invoices).aggregate(total=_money(Sum(_kept_cost())))["total"]
    expenses_afn = expenses_between(date_from, date_to).aggregate(total=_money(Sum("amount")))["total"]

    total_sales = round_usd(sales["total_sales"])
    cogs = round_usd(cogs)
    return {
        "period": label,
        "type": period_type,
        "date_from": date_from,
        "date_to": date_to,
        "total_sales": total_sales,
        "cogs": cogs,
        "gross_profit": total_sales - cogs,
        "invoice_count": sales["invoice_count"],
        "expenses_afn": round_usd(expenses_afn),
    }


def sales_summary(invoices):
    totals = invoices.aggregate(
        total_sales=_money(Sum(_net_total())),
        total_sales_afn=_money(Sum(_net_total_afn())),
        avg_ticket=_money(Avg("total")),
        outstanding=_money(Sum("outstanding_amount")),
        sales_count=Count("id"),
    )
    return {
        "total_sales": round_usd(totals["total_sales"]),
        "total_sales_afn": round_afn(totals["total_sales_afn"]),
        "avg_ticket": round_usd(totals["avg_ticket"]),
        "outstanding": round_usd(totals["outstanding"]),
        "sales_count": totals["sales_count"],
    }


def sales_by_day(invoices):
    return list(
        invoices.order_by()
        .values("created_at__date")
        .annotate(total_sales=_money(Sum(_net_total())), sales_count=Count("id"))
        .order_by("created_at__date")
    )


def sales_by_cashier(invoices):
    return list(
        invoices.order_by()
        .values("cashier_id", "cashier__username")
        .annotate(
            total_sales=_money(Sum(_net_total())),
            sales_count=Count("id"),
            avg_ticket=_money(Avg("total")),
        )
        .order_by("-total_sales")
    )


def top_products(invoices, limit=10):
    return list(
        InvoiceLine.objects.filter(invoice__in=invoices)
        .values("product_id", "product__sku", "product__name")
        .annotate(
            units_sold=Coalesce(Sum(F("quantity") - F("returned_quantity")), 0),
            sales_amount=_money(Sum(_kept_revenue())),
        )
        .order_by("-units_sold", "-sales_amount")[:limit]
    )


def payment_breakdown(date_from=None, date_to=None):
    payments = Payment.objects.all()
    if date_from:
        payments = payments.filter(created_at__date__gte=date_from)
    if date_to:
        payments = payments.filter(created_at__date__lte=date_to)
    return list(
        payments.order_by()
        .values("method")
        .annotate(
            total_amount=_money(Sum("amount")),
            total_amount_afn=_money(Sum("amount_afn")),
            transactions=Count("id"),
        )
        .order_by("method")
    )


def expenses_summary(expenses):
    summary = expenses.aggregate(total_expenses=_money(Sum("amount")), expenses_count=Count("id"))
    summary["by_category"] = list(
        expenses.order_by()
        .values("category")
        .annotate(total_amount=_money(Sum("amount")), items_count=Count("id"))
        .order_by("-total_amount", "category")
    )
    return summary


def sales_report(date_from=None, date_to=None, top_limit=10):
    invoices = invoices_between(date_from, date_to)
    summary = sales_summary(invoices)
    expenses = expenses_summary(expenses_between(date_from, date_to))
    return {
        "range": {"date_from": date_from, "date_to": date_to},
        **summary,
        "sales_by_day": sales_by_day(invoices),
        "sales_by_cashier": sales_by_cashier(invoices),
        "top_products": top_products(invoices, top_limit),
        "payment_breakdown": payment_breakdown(date_from, date_to),
        "expenses_summary": expenses,
        "net_sales_after_expenses_afn": summary["total_sales_afn"] - round_afn(expenses["total_expenses"]),
    }


def aging_report(now=None):
    now = now or timezone.now()
    overdue_after = settings.POS_AGING_OVERDUE_DAYS
    rows = []
    for debt in DebtRecord.objects.filter(remaining_amount_afn__gt=0).select_related("customer", "invoice").order_by("created_at"):
        days_open = (now - debt.created_at).days
        rows.append(
            {
                "id": str(debt.id),
                "customer_id": str(debt.customer_id),
                "customer_name": debt.customer.name,
                "invoice_number": debt.invoice.invoice_number if debt.invoice_id else None,
                "source": debt.source,
                "remaining_amount": debt.remaining_amount,
                "remaining_amount_afn": debt.remaining_amount_afn,
                "due_date": debt.due_date,
                "days_open": days_open,
                "is_overdue": days_open > overdue_after,
            }
        )
    return {
        "overdue_after_days": overdue_after,
        "total_remaining_afn": round_afn(sum((row["remaining_amount_afn"] for row in rows), ZERO)),
        "overdue_count": sum(1 for row in rows if row["is_overdue"]),
        "debts": rows,
    }


def inventory_valuation(rate):
    cost_value = ZERO
    retail_value = ZERO
    by_category = {}
    products = with_stock(Product.objects.filter(is_active=True)).filter(stock__gt=0)
    for product in products:
        if product.has_fixed_afn_price:
            unit_retail = product.sale_price_afn / rate
        else:
            unit_retail = product.sale_price
        line_cost = product.cost_price * product.stock
        line_retail = unit_retail * product.stock
        cost_value += line_cost
        retail_value += line_retail
        category = product.category or "Uncategorized"
        by_category[category] = by_category.get(category, ZERO) + line_retail

    return {
        "cost_value": round_usd(cost_value),
        "retail_value": round_usd(retail_value),
        "retail_value_afn": round_afn(retail_value * rate),
        "potential_margin": round_usd(retail_value - cost_value),
        "by_category": [
            {"category": category, "retail_value": round_usd(value)}
            for category, value in sorted(by_category.items(), key=lambda item: item[1], reverse=True)
        ],
    }
