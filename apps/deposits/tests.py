from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer
from apps.deposits.models import CustomerDeposit, DepositStatus
from apps.deposits.services import create_deposit
from apps.ledger.models import CashEntry, CashEntryType
from apps.ledger.services import current_balance

User = get_user_model()


class DepositApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.accountant = User.objects.create_user(username="accountant", password="acc123", role="ACCOUNTANT")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        self.customer = Customer.objects.create(display_id="NA20002", name="Nadia", phone="0700333444")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_deposit_puts_cash_in_drawer(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.post(
            "/api/v1/deposits/",
            {"customer": str(self.customer.id), "amount_afn": "5000", "notes": "Savings"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["deposit_number"], "DEP-0001")
        self.assertEqual(response.data["status"], DepositStatus.ACTIVE)
        self.assertEqual(response.data["remaining_amount_afn"], "5000.00")
        self.assertEqual(response.data["customer_display_id"], "NA20002")

        self.assertEqual(current_balance(), Decimal("5000.00"))
        self.assertTrue(
            CashEntry.objects.filter(entry_type=CashEntryType.DEPOSIT, reference_id=response.data["id"]).exists()
        )
        self.assertTrue(AuditLog.objects.filter(action="deposit.create", entity_id=response.data["id"]).exists())

        second = self.client.post(
            "/api/v1/deposits/",
            {"customer": str(self.customer.id), "amount_afn": "100"},
            format="json",
        )
        self.assertEqual(second.data["deposit_number"], "DEP-0002")

    def test_numbering_keeps_counting_past_four_digits(self):
        deposit = create_deposit(customer=self.customer, amount_afn=Decimal("10"))
        CustomerDeposit.objects.filter(pk=deposit.pk).update(deposit_number="DEP-9999")
        self.assertEqual(create_deposit(customer=self.customer, amount_afn=Decimal("10")).deposit_number, "DEP-10000")
        self.assertEqual(create_deposit(customer=self.customer, amount_afn=Decimal("10")).deposit_number, "DEP-10001")

    def test_partial_then_full_withdrawal(self):
        deposit = create_deposit(customer=self.customer, amount_afn=Decimal("5000"), user=self.admin)
        self.auth_as("cashier", "cashier123")
        url = f"/api/v1/deposits/{deposit.id}/withdraw/"

        partial = self.client.post(url, {"amount_afn": "2000"}, format="json")
        self.assertEqual(partial.status_code, 200)
        self.assertEqual(partial.data["deposit"]["status"], DepositStatus.PARTIAL)
        self.assertEqual(partial.data["deposit"]["remaining_amount_afn"], "3000.00")
        self.assertEqual(partial.data["deposit"]["withdrawn_amount_afn"], "2000.00")
        self.assertEqual(partial.data["withdrawal"]["amount_afn"], "2000.00")
        self.assertEqual(current_balance(), Decimal("3000.00"))

        full = self.client.post(url, {"amount_afn": "3000", "notes": "Closing"}, format="json")
        self.assertEqual(full.status_code, 200)
        self.assertEqual(full.data["deposit"]["status"], DepositStatus.WITHDRAWN)
        self.assertEqual(len(full.data["deposit"]["withdrawals"]), 2)
        self.assertEqual(current_balance(), Decimal("0.00"))

        again = self.client.post(url, {"amount_afn": "1"}, format="json")
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.data["code"], "business_rule")
        self.assertEqual(AuditLog.objects.filter(action="deposit.withdraw", entity_id=str(deposit.id)).count(), 2)

    def test_withdrawal_over_remaining_is_rejected(self):
        deposit = create_deposit(customer=self.customer, amount_afn=Decimal("1000"))
        self.auth_as("cashier", "cashier123")
        response = self.client.post(f"/api/v1/deposits/{deposit.id}/withdraw/", {"amount_afn": "1000.01"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount_afn", response.data["fields"])
        deposit.refresh_from_db()
        self.assertEqual(deposit.remaining_amount_afn, Decimal("1000.00"))
        self.assertEqual(current_balance(), Decimal("1000.00"))

    def test_accountant_can_read_but_not_take_deposits(self):
        create_deposit(customer=self.customer, amount_afn=Decimal("500"))
        self.auth_as("accountant", "acc123")
        listed = self.client.get("/api/v1/deposits/")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["count"], 1)

        refused = self.client.post(
            "/api/v1/deposits/",
            {"customer": str(self.customer.id), "amount_afn": "100"},
            format="json",
        )
        self.assertEqual(refused.status_code, 403)

    def test_list_filters_and_summary(self):
        other = Customer.objects.create(display_id="OM30003", name="Omid")
        kept = create_deposit(customer=self.customer, amount_afn=Decimal("4000"))
        emptied = create_deposit(customer=other, amount_afn=Decimal("1500"))
        self.auth_as("admin", "admin123")
        self.client.post(f"/api/v1/deposits/{emptied.id}/withdraw/", {"amount_afn": "1500"}, format="json")

        by_customer = self.client.get("/api/v1/deposits/", {"customer": str(self.customer.id)})
        self.assertEqual([row["id"] for row in by_customer.data["results"]], [str(kept.id)])
        withdrawn = self.client.get("/api/v1/deposits/", {"status": "withdrawn"})
        self.assertEqual([row["deposit_number"] for row in withdrawn.data["results"]], [emptied.deposit_number])

        detail = self.client.get(f"/api/v1/deposits/{emptied.id}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(len(detail.data["withdrawals"]), 1)

        summary = self.client.get("/api/v1/deposits/summary/")
        self.assertEqual(summary.status_code, 200)
        self.assertEqual(summary.data["total_active_afn"], Decimal("4000.00"))
        self.assertEqual(summary.data["total_withdrawn_afn"], Decimal("1500.00"))
        self.assertEqual(summary.data["total_deposits"], 2)
        self.assertEqual(summary.data["status_counts"][DepositStatus.WITHDRAWN], 1)
        self.assertEqual(summary.data["status_counts"][DepositStatus.ACTIVE], 1)

    def test_customer_holding_a_deposit_cannot_be_deleted(self):
        deposit = create_deposit(customer=self.customer, amount_afn=Decimal("700"))
        self.auth_as("admin", "admin123")
        url = f"/api/v1/customers/{self.customer.id}/"

        refused = self.client.delete(url, {"admin_password": "admin123"}, format="json")
        self.assertEqual(refused.status_code, 400)
        self.assertEqual(refused.data["code"], "business_rule")

        self.client.post(f"/api/v1/deposits/{deposit.id}/withdraw/", {"amount_afn": "700"}, format="json")
        deleted = self.client.delete(url, {"admin_password": "admin123"}, format="json")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(CustomerDeposit.objects.exists())
