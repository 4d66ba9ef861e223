from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer
from apps.debts.models import DebtRecord, DebtSource, DebtStatus
from apps.debts.services import derive_status, lend
from apps.ledger.models import CashEntryType
from apps.ledger.services import current_balance, post_cash_entry
from apps.shop.services import set_exchange_rate

User = get_user_model()


class DebtStatusTests(SimpleTestCase):
    def setUp(self):
        self.now = timezone.now()

    def test_settled_when_nothing_remains(self):
        self.assertEqual(derive_status(self.now - timedelta(days=3), Decimal("0"), self.now), DebtStatus.SETTLED)

    def test_overdue_after_due_date(self):
        self.assertEqual(derive_status(self.now - timedelta(minutes=1), Decimal("10"), self.now), DebtStatus.OVERDUE)

    def test_due_soon_within_a_day(self):
        self.assertEqual(derive_status(self.now + timedelta(hours=23), Decimal("10"), self.now), DebtStatus.DUE_SOON)

    def test_active_further_out(self):
        self.assertEqual(derive_status(self.now + timedelta(days=3), Decimal("10"), self.now), DebtStatus.ACTIVE)


class DebtApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        set_exchange_rate(rate="70")
        self.customer = Customer.objects.create(display_id="RA50005", name="Rahim")
        post_cash_entry(entry_type=CashEntryType.MANUAL, amount_afn=Decimal("10000"), description="Opening float")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def make_debt(self, amount_afn="1400", due_in=timedelta(days=10)):
        return lend(
            customer=self.customer,
            amount_afn=Decimal(amount_afn),
            exchange_rate=Decimal("70"),
            due_date=timezone.now() + due_in,
            user=self.admin,
        )

    def test_lend_takes_cash_out_and_opens_debt(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/debts/lend/",
            {
                "customer": str(self.customer.id),
                "amount_afn": "1400",
                "due_date": (timezone.now() + timedelta(days=5)).isoformat(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["source"], DebtSource.LENDING)
        self.assertEqual(response.data["original_amount"], "20.00")
        self.assertEqual(response.data["status"], DebtStatus.ACTIVE)

        self.assertEqual(current_balance(), Decimal("8600.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("20.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("1400.00"))
        self.assertTrue(AuditLog.objects.filter(action="debt.lend", entity_id=response.data["id"]).exists())

    def test_cashier_cannot_lend(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.post(
            "/api/v1/debts/lend/",
            {"customer": str(self.customer.id), "amount_afn": "100"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_partial_then_full_payment(self):
        debt = self.make_debt()
        self.auth_as("cashier", "cashier123")

        partial = self.client.post(f"/api/v1/debts/{debt.id}/payments/", {"amount_afn": "400"}, format="json")
        self.assertEqual(partial.status_code, 201)
        self.assertEqual(partial.data["debt"]["remaining_amount_afn"], "1000.00")
        self.assertEqual(partial.data["payment"]["amount"], "5.71")

        full = self.client.post(f"/api/v1/debts/{debt.id}/payments/", {"amount_afn": "1000"}, format="json")
        self.assertEqual(full.status_code, 201)
        self.assertEqual(full.data["debt"]["status"], DebtStatus.SETTLED)
        self.assertEqual(full.data["debt"]["remaining_amount"], "0.00")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))
        self.assertEqual(current_balance(), Decimal("10000.00"))

        history = self.client.get(f"/api/v1/debts/{debt.id}/payments/")
        self.assertEqual(len(history.data), 2)

    def test_payment_over_remaining_is_rejected(self):
        debt = self.make_debt()
        self.auth_as("cashier", "cashier123")
        response = self.client.post(f"/api/v1/debts/{debt.id}/payments/", {"amount_afn": "1400.01"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount_afn", response.data["fields"])
        debt.refresh_from_db()
        self.assertEqual(debt.remaining_amount_afn, Decimal("1400.00"))

    def test_update_due_date_rederives_status(self):
        debt = self.make_debt()
        self.auth_as("admin", "admin123")
        response = self.client.patch(
            f"/api/v1/debts/{debt.id}/",
            {"due_date": (timezone.now() + timedelta(hours=6)).isoformat(), "notes": "Promised Friday"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], DebtStatus.DUE_SOON)
        self.assertEqual(response.data["notes"], "Promised Friday")

        past = self.client.patch(
            f"/api/v1/debts/{debt.id}/",
            {"due_date": (timezone.now() - timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(past.status_code, 400)

    def test_deleting_lending_debt_returns_cash_and_clears_balance(self):
        debt = self.make_debt()
        self.assertEqual(current_balance(), Decimal("8600.00"))
        self.auth_as("admin", "admin123")

        response = self.client.delete(f"/api/v1/debts/{debt.id}/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(DebtRecord.objects.filter(pk=debt.pk).exists())
        self.assertEqual(current_balance(), Decimal("10000.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))

    def test_list_filters_and_refreshes_statuses(self):
        overdue = self.make_debt()
        DebtRecord.objects.filter(pk=overdue.pk).update(due_date=timezone.now() - timedelta(days=1))
        self.make_debt(amount_afn="700")
        self.auth_as("cashier", "cashier123")

        response = self.client.get("/api/v1/debts/", {"status": "overdue"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["id"], str(overdue.id))

    def test_summary_and_debtors(self):
        self.make_debt()
        self.make_debt(amount_afn="700", due_in=timedelta(hours=2))
        Customer.objects.create(display_id="NO60006", name="No Debt")
        self.auth_as("admin", "admin123")

        summary = self.client.get("/api/v1/debts/summary/")
        self.assertEqual(summary.status_code, 200)
        self.assertEqual(summary.data["total_outstanding_afn"], Decimal("2100"))
        self.assertEqual(summary.data["debtor_count"], 1)
        self.assertEqual(summary.data["status_counts"][DebtStatus.DUE_SOON], 1)
        self.assertEqual(summary.data["status_counts"][DebtStatus.ACTIVE], 1)

        debtors = self.client.get("/api/v1/debts/debtors/")
        self.assertEqual(len(debtors.data), 1)
        self.assertEqual(debtors.data[0]["display_id"], "RA50005")
        self.assertEqual(debtors.data[0]["open_debts"], 2)
        self.assertEqual(debtors.data[0]["due_soon_count"], 1)

    def test_batch_update_status(self):
        debt = self.make_debt()
        DebtRecord.objects.filter(pk=debt.pk).update(due_date=timezone.now() - timedelta(hours=1))
        self.auth_as("admin", "admin123")

        response = self.client.post("/api/v1/debts/batch-update-status/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["updated"], 1)
        debt.refresh_from_db()
        self.assertEqual(debt.status, DebtStatus.OVERDUE)

    def test_refresh_command(self):
        debt = self.make_debt()
        DebtRecord.objects.filter(pk=debt.pk).update(due_date=timezone.now() + timedelta(hours=3))
        out = StringIO()
        call_command("refresh_debt_statuses", stdout=out)
        self.assertIn("Debt statuses updated: 1", out.getvalue())
        debt.refresh_from_db()
        self.assertEqual(debt.status, DebtStatus.DUE_SOON)
