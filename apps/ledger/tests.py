from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.ledger.models import CashEntry, CashEntryType
from apps.ledger.services import current_balance, post_cash_entry

User = get_user_model()


class CashLedgerTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.accountant = User.objects.create_user(username="accountant", password="acc123", role="ACCOUNTANT")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_balance_is_sum_of_entries(self):
        post_cash_entry(entry_type=CashEntryType.SALE, amount_afn=Decimal("6300"))
        post_cash_entry(entry_type=CashEntryType.EXPENSE, amount_afn=Decimal("-1200.50"))
        self.auth_as("accountant", "acc123")
        response = self.client.get("/api/v1/cash/balance/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance"], Decimal("5099.50"))

    def test_zero_entries_are_not_recorded(self):
        self.assertIsNone(post_cash_entry(entry_type=CashEntryType.MANUAL, amount_afn=Decimal("0.001")))
        self.assertEqual(CashEntry.objects.count(), 0)

    def test_set_balance_posts_the_difference(self):
        post_cash_entry(entry_type=CashEntryType.SALE, amount_afn=Decimal("1000"))
        self.auth_as("manager", "manager123")
        response = self.client.post(
            "/api/v1/cash/balance/",
            {"balance": "2500", "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(current_balance(), Decimal("2500.00"))

        entry = CashEntry.objects.get(entry_type=CashEntryType.MANUAL)
        self.assertEqual(entry.amount_afn, Decimal("1500.00"))
        self.assertEqual(entry.created_by, self.manager)
        log = AuditLog.objects.get(action="cash.balance.set")
        self.assertEqual(log.details, {"previous": "1000.00", "balance": "2500.00"})

    def test_set_balance_requires_admin_key(self):
        self.auth_as("manager", "manager123")
        response = self.client.post(
            "/api/v1/cash/balance/",
            {"balance": "2500", "admin_password": "manager123"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(CashEntry.objects.count(), 0)

    def test_negative_balance_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/cash/balance/",
            {"balance": "-1", "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("balance", response.data["fields"])

    def test_accountant_cannot_set_balance(self):
        self.auth_as("accountant", "acc123")
        response = self.client.post(
            "/api/v1/cash/balance/",
            {"balance": "10", "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_cashier_cannot_see_cash(self):
        self.auth_as("cashier", "cashier123")
        self.assertEqual(self.client.get("/api/v1/cash/balance/").status_code, 403)
        self.assertEqual(self.client.get("/api/v1/cash/entries/").status_code, 403)

    def test_entries_filter_by_type(self):
        post_cash_entry(entry_type=CashEntryType.SALE, amount_afn=Decimal("700"), user=self.admin)
        post_cash_entry(entry_type=CashEntryType.REFUND, amount_afn=Decimal("-70"))
        self.auth_as("accountant", "acc123")
        response = self.client.get("/api/v1/cash/entries/", {"entry_type": "refund"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["amount_afn"], "-70.00")
