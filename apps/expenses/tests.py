from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.expenses.models import Expense
from apps.ledger.models import CashEntry, CashEntryType
from apps.ledger.services import current_balance

User = get_user_model()


class ExpensesApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_exp", password="admin123", role="ADMIN")
        self.accountant = User.objects.create_user(username="accountant_exp", password="acc123", role="ACCOUNTANT")
        self.cashier = User.objects.create_user(username="cashier_exp", password="cashier123", role="CASHIER")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_expense_lifecycle_moves_cash_and_is_audited(self):
        self.auth_as("admin_exp", "admin123")
        today = timezone.localdate()
        create_response = self.client.post(
            "/api/v1/expenses/",
            {
                "category": "Rent",
                "description": "Shop rent",
                "amount": "3500.00",
                "expense_date": str(today),
            },
            format="json",
        )
        self.assertEqual(create_response.status_code, 201)
        self.assertEqual(create_response.data["created_by_username"], "admin_exp")
        expense_id = create_response.data["id"]
        self.assertEqual(current_balance(), Decimal("-3500.00"))

        update_response = self.client.patch(
            f"/api/v1/expenses/{expense_id}/",
            {"amount": "3600.00"},
            format="json",
        )
        self.assertEqual(update_response.status_code, 200)
        self.assertEqual(current_balance(), Decimal("-3600.00"))

        list_response = self.client.get(
            "/api/v1/expenses/",
            {
                "date_from": str(today - timedelta(days=1)),
                "date_to": str(today + timedelta(days=1)),
                "category": "rent",
            },
        )
        self.assertEqual(list_response.status_code, 200)
        self.assertEqual(list_response.data["count"], 1)
        self.assertEqual(list_response.data["results"][0]["amount"], "3600.00")

        delete_response = self.client.delete(
            f"/api/v1/expenses/{expense_id}/", {"admin_password": "admin123"}, format="json"
        )
        self.assertEqual(delete_response.status_code, 204)
        self.assertEqual(current_balance(), Decimal("0.00"))
        self.assertTrue(
            CashEntry.objects.filter(entry_type=CashEntryType.EXPENSE_REVERSAL, reference_id=expense_id).exists()
        )

        self.assertTrue(AuditLog.objects.filter(action="expenses.create", entity_id=expense_id).exists())
        self.assertTrue(AuditLog.objects.filter(action="expenses.update", entity_id=expense_id).exists())
        self.assertTrue(AuditLog.objects.filter(action="expenses.delete", entity_id=expense_id).exists())

    def test_delete_requires_admin_key(self):
        self.auth_as("accountant_exp", "acc123")
        expense = Expense.objects.create(category="Fuel", description="Generator", amount=Decimal("800.00"))
        response = self.client.delete(f"/api/v1/expenses/{expense.id}/", {"admin_password": "acc123"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "invalid_admin_key")
        self.assertTrue(Expense.objects.filter(pk=expense.pk).exists())

        allowed = self.client.delete(f"/api/v1/expenses/{expense.id}/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(allowed.status_code, 204)

    def test_cashier_cannot_access_expenses(self):
        self.auth_as("cashier_exp", "cashier123")
        response = self.client.get("/api/v1/expenses/")
        self.assertEqual(response.status_code, 403)

    def test_amount_must_be_positive(self):
        self.auth_as("admin_exp", "admin123")
        response = self.client.post(
            "/api/v1/expenses/",
            {
                "category": "Utilities",
                "description": "Power bill",
                "amount": "0.00",
                "expense_date": str(timezone.localdate()),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.data["fields"])
        self.assertEqual(Expense.objects.count(), 0)
        self.assertEqual(CashEntry.objects.count(), 0)

    def test_future_expense_date_is_rejected(self):
        self.auth_as("admin_exp", "admin123")
        response = self.client.post(
            "/api/v1/expenses/",
            {
                "category": "Rent",
                "description": "Next month",
                "amount": "100.00",
                "expense_date": str(timezone.localdate() + timedelta(days=1)),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("expense_date", response.data["fields"])

    def test_categories_are_totalled(self):
        Expense.objects.create(category="Rent", description="March", amount=Decimal("3000.00"))
        Expense.objects.create(category="Rent", description="April", amount=Decimal("3000.00"))
        Expense.objects.create(category="Fuel", description="Generator", amount=Decimal("450.00"))
        self.auth_as("accountant_exp", "acc123")

        response = self.client.get("/api/v1/expenses/categories/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["category"] for row in response.data], ["Fuel", "Rent"])
        self.assertEqual(response.data[1]["items_count"], 2)
        self.assertEqual(Decimal(str(response.data[1]["total_amount"])), Decimal("6000.00"))
