import re
import uuid
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer
from apps.debts.models import DebtRecord, DebtStatus
from apps.debts.services import lend
from apps.ledger.models import CashEntry, CashEntryType
from apps.shop.services import set_exchange_rate

User = get_user_model()


class CustomerApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.accountant = User.objects.create_user(username="accountant", password="acc123", role="ACCOUNTANT")
        set_exchange_rate(rate="70")
        self.customer = Customer.objects.create(display_id="KA10001", name="Karim", phone="0700111222")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def lend_to(self, customer, amount_afn, days_ago=0):
        debt = lend(
            customer=customer,
            amount_afn=Decimal(amount_afn),
            exchange_rate=Decimal("70"),
            due_date=timezone.now() + timedelta(days=14),
            user=self.admin,
        )
        if days_ago:
            DebtRecord.objects.filter(pk=debt.pk).update(created_at=timezone.now() - timedelta(days=days_ago))
        return debt

    def test_create_assigns_display_id_and_is_audited(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/customers/",
            {"name": "  Nadia  ", "phone": "0799000000", "display_id": "ZZ00000"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["name"], "Nadia")
        self.assertRegex(response.data["display_id"], r"^[A-Z]{2}\d{5}$")
        self.assertNotEqual(response.data["display_id"], "ZZ00000")
        self.assertFalse(response.data["balance_afn_is_fixed"])
        self.assertTrue(AuditLog.objects.filter(action="customer.create", entity_id=response.data["id"]).exists())

    def test_blank_name_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/customers/", {"name": "   "}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("name", response.data["fields"])

    def test_accountant_cannot_create_customers(self):
        self.auth_as("accountant", "acc123")
        response = self.client.post("/api/v1/customers/", {"name": "Nadia"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_list_defaults_to_active_and_searches(self):
        Customer.objects.create(display_id="OL20002", name="Old Karim", is_active=False)
        Customer.objects.create(display_id="FA30003", name="Farid", phone="0788555444")
        self.auth_as("accountant", "acc123")

        active = self.client.get("/api/v1/customers/", {"q": "karim"})
        self.assertEqual([row["display_id"] for row in active.data["results"]], ["KA10001"])

        everyone = self.client.get("/api/v1/customers/", {"q": "karim", "status": "all"})
        self.assertEqual(everyone.data["count"], 2)

        by_phone = self.client.get("/api/v1/customers/", {"q": "0788"})
        self.assertEqual([row["name"] for row in by_phone.data["results"]], ["Farid"])

        by_display_id = self.client.get("/api/v1/customers/", {"q": "fa30003"})
        self.assertEqual(by_display_id.data["count"], 1)

    def test_payment_moves_afn_balance_by_exact_amount(self):
        self.lend_to(self.customer, "7000")
        set_exchange_rate(rate="75")
        self.auth_as("admin", "admin123")

        response = self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "3500"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["amount"], Decimal("46.67"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("3500.00"))
        self.assertEqual(self.customer.outstanding_balance, Decimal("53.33"))

        debt = DebtRecord.objects.get(customer=self.customer)
        self.assertEqual(debt.remaining_amount_afn, Decimal("3500.00"))
        self.assertEqual(debt.remaining_amount, Decimal("50.00"))
        self.assertTrue(
            CashEntry.objects.filter(entry_type=CashEntryType.CUSTOMER_PAYMENT, amount_afn=Decimal("3500.00")).exists()
        )

    def test_negative_payment_raises_balance(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "-700", "exchange_rate": "70"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["allocations"], [])

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("700.00"))
        self.assertEqual(self.customer.outstanding_balance, Decimal("10.00"))
        entry = CashEntry.objects.get(entry_type=CashEntryType.CUSTOMER_PAYMENT)
        self.assertEqual(entry.amount_afn, Decimal("-700.00"))

    def test_zero_payment_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "0"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount_afn", response.data["fields"])

    def test_payment_is_allocated_oldest_debt_first(self):
        older = self.lend_to(self.customer, "1000", days_ago=3)
        newer = self.lend_to(self.customer, "2000", days_ago=1)
        self.auth_as("admin", "admin123")

        response = self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "1500", "exchange_rate": "70"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual([row["debt_id"] for row in response.data["allocations"]], [str(older.id), str(newer.id)])

        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual(older.remaining_amount_afn, Decimal("0.00"))
        self.assertEqual(older.status, DebtStatus.SETTLED)
        self.assertEqual(newer.remaining_amount_afn, Decimal("1500.00"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("1500.00"))

    def test_delete_refused_while_balance_outstanding(self):
        self.lend_to(self.customer, "700")
        self.auth_as("admin", "admin123")

        refused = self.client.delete(
            f"/api/v1/customers/{self.customer.id}/", {"admin_password": "admin123"}, format="json"
        )
        self.assertEqual(refused.status_code, 400)
        self.assertEqual(refused.data["code"], "business_rule")

        self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "700", "exchange_rate": "70"},
            format="json",
        )
        deleted = self.client.delete(
            f"/api/v1/customers/{self.customer.id}/", {"admin_password": "admin123"}, format="json"
        )
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(Customer.objects.filter(pk=self.customer.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="customer.delete", entity_id=str(self.customer.id)).exists())

    def test_delete_needs_admin_key(self):
        self.auth_as("admin", "admin123")
        response = self.client.delete(
            f"/api/v1/customers/{self.customer.id}/", {"admin_password": "wrong"}, format="json"
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "invalid_admin_key")

    def test_bulk_delete_reports_failures(self):
        clean = Customer.objects.create(display_id="CL40004", name="Clean")
        self.lend_to(self.customer, "700")
        missing = uuid.uuid4()
        self.auth_as("admin", "admin123")

        response = self.client.post(
            "/api/v1/customers/bulk-delete/",
            {"ids": [str(clean.id), str(self.customer.id), str(missing)], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["deleted"], [str(clean.id)])
        self.assertEqual({row["id"] for row in response.data["failed"]}, {str(self.customer.id), str(missing)})
        self.assertTrue(Customer.objects.filter(pk=self.customer.pk).exists())

    def test_toggle_status_archives_customer(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(f"/api/v1/customers/{self.customer.id}/toggle-status/")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["is_active"])
        self.assertTrue(AuditLog.objects.filter(action="customer.toggle_status").exists())

    def test_detail_lists_recent_payments(self):
        self.auth_as("admin", "admin123")
        self.client.post(
            f"/api/v1/customers/{self.customer.id}/payment/",
            {"amount_afn": "-140", "exchange_rate": "70"},
            format="json",
        )
        response = self.client.get(f"/api/v1/customers/{self.customer.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["recent_invoices"], [])
        self.assertEqual(len(response.data["recent_payments"]), 1)
        self.assertEqual(response.data["recent_payments"][0]["reference"], "Refund")
        self.assertTrue(re.match(r"^[A-Z]{2}\d{5}$", response.data["display_id"]))
