from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.customers.models import Customer
from apps.debts.models import DebtRecord
from apps.debts.services import lend
from apps.expenses.models import Expense
from apps.inventory.models import InventoryMovement, MovementType
from apps.shop.services import set_exchange_rate

User = get_user_model()


class ReportsApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.accountant = User.objects.create_user(username="accountant", password="acc123", role="ACCOUNTANT")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        set_exchange_rate(rate="70")

        self.tea = Product.objects.create(
            sku="TEA-1", name="Tea", category="Drinks", sale_price=Decimal("100.00"), cost_price=Decimal("60.00")
        )
        self.chips = Product.objects.create(
            sku="CHP-1",
            name="Chips",
            category="Snacks",
            sale_price=Decimal("1.00"),
            sale_price_afn=Decimal("75.00"),
            cost_price=Decimal("0.50"),
        )
        for product, quantity in ((self.tea, 10), (self.chips, 2)):
            InventoryMovement.objects.create(
                product=product,
                movement_type=MovementType.INBOUND,
                quantity_delta=quantity,
                reference_type="seed",
                reference_id="seed-stock",
            )
        self.customer = Customer.objects.create(display_id="SH70007", name="Shafi")

        self.auth_as("admin", "admin123")
        self.sell(tendered_afn="7000")
        self.sell(
            tendered_afn="3000",
            customer=str(self.customer.id),
            due_date=(timezone.now() + timedelta(days=7)).isoformat(),
        )
        Expense.objects.create(category="Rent", description="Shop rent", amount=Decimal("500.00"))

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def sell(self, **payload):
        payload["items"] = [{"product": str(self.tea.id), "quantity": 1}]
        response = self.client.post("/api/v1/sales/", payload, format="json")
        self.assertEqual(response.status_code, 201)
        return response.data

    def test_dashboard(self):
        self.auth_as("accountant", "acc123")
        response = self.client.get("/api/v1/reports/dashboard/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["today_sales_afn"], Decimal("14000"))
        self.assertEqual(response.data["today_invoice_count"], 2)
        self.assertEqual(response.data["outstanding_credit_afn"], Decimal("4000"))
        self.assertEqual([row["sku"] for row in response.data["low_stock"]], ["CHP-1"])

    def test_cashier_cannot_read_reports(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.get("/api/v1/reports/dashboard/")
        self.assertEqual(response.status_code, 403)

    def test_monthly_period_report(self):
        today = timezone.localdate()
        response = self.client.get("/api/v1/reports/period/", {"type": "monthly", "year": today.year, "month": today.month})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_sales"], Decimal("200.00"))
        self.assertEqual(response.data["cogs"], Decimal("120.00"))
        self.assertEqual(response.data["gross_profit"], Decimal("80.00"))
        self.assertEqual(response.data["invoice_count"], 2)
        self.assertEqual(response.data["expenses_afn"], Decimal("500.00"))

    def test_period_report_excludes_other_years(self):
        response = self.client.get("/api/v1/reports/period/", {"type": "yearly", "year": 2001})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["period"], "2001")
        self.assertEqual(response.data["invoice_count"], 0)
        self.assertEqual(response.data["total_sales"], Decimal("0.00"))

    def test_monthly_report_needs_month(self):
        response = self.client.get("/api/v1/reports/period/", {"type": "monthly", "year": 2026})
        self.assertEqual(response.status_code, 400)
        self.assertIn("month", response.data["fields"])

    def test_sales_report(self):
        today = str(timezone.localdate())
        response = self.client.get("/api/v1/reports/sales/", {"date_from": today, "date_to": today})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_sales"], Decimal("200.00"))
        self.assertEqual(response.data["total_sales_afn"], Decimal("14000"))
        self.assertEqual(response.data["sales_count"], 2)
        self.assertEqual(response.data["outstanding"], Decimal("57.14"))
        self.assertEqual(response.data["top_products"][0]["product__sku"], "TEA-1")
        self.assertEqual(response.data["top_products"][0]["units_sold"], 2)
        self.assertEqual(response.data["sales_by_cashier"][0]["cashier__username"], "admin")
        self.assertEqual(response.data["expenses_summary"]["total_expenses"], Decimal("500.00"))
        self.assertEqual(response.data["net_sales_after_expenses_afn"], Decimal("13500"))

        cash = response.data["payment_breakdown"][0]
        self.assertEqual(cash["method"], "CASH")
        self.assertEqual(cash["transactions"], 2)
        self.assertEqual(cash["total_amount_afn"], Decimal("10000.00"))

    def test_sales_report_rejects_inverted_range(self):
        response = self.client.get("/api/v1/reports/sales/", {"date_from": "2026-02-01", "date_to": "2026-01-01"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("date_from", response.data["fields"])

    def test_aging_report(self):
        old = lend(
            customer=self.customer,
            amount_afn=Decimal("1400"),
            exchange_rate=Decimal("70"),
            due_date=timezone.now() + timedelta(days=1),
            user=self.admin,
        )
        DebtRecord.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=40))

        response = self.client.get("/api/v1/reports/aging/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_remaining_afn"], Decimal("5400"))
        self.assertEqual(response.data["overdue_count"], 1)
        first = response.data["debts"][0]
        self.assertEqual(first["id"], str(old.id))
        self.assertEqual(first["days_open"], 40)
        self.assertTrue(first["is_overdue"])
        self.assertIsNotNone(response.data["debts"][1]["invoice_number"])

    def test_inventory_valuation(self):
        response = self.client.get("/api/v1/reports/inventory-valuation/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["cost_value"], Decimal("481.00"))
        self.assertEqual(response.data["retail_value"], Decimal("802.14"))
        self.assertEqual(response.data["retail_value_afn"], Decimal("56150"))
        self.assertEqual(response.data["potential_margin"], Decimal("321.14"))
        self.assertEqual([row["category"] for row in response.data["by_category"]], ["Drinks", "Snacks"])
