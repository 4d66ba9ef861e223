import uuid
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.customers.models import Customer
from apps.debts.models import DebtRecord, DebtStatus
from apps.inventory.models import InventoryMovement, MovementType
from apps.ledger.services import current_balance
from apps.sales.checkout import CheckoutError, compute_totals, derive_invoice_status, price_line, settle
from apps.sales.models import Invoice, InvoiceStatus, Payment
from apps.shop.services import set_exchange_rate

User = get_user_model()


def make_product(sale_price="100.00", sale_price_afn=None, cost_price="60.00"):
    return SimpleNamespace(
        sale_price=Decimal(sale_price),
        sale_price_afn=Decimal(sale_price_afn) if sale_price_afn else None,
        cost_price=Decimal(cost_price),
    )


class CheckoutCalculationTests(SimpleTestCase):
    def totals(self, discount="10", rate="70"):
        lines = [price_line(make_product(), 1, Decimal(rate))]
        return compute_totals(lines, Decimal(discount), Decimal(rate))

    def test_discounted_total_in_both_currencies(self):
        totals = self.totals()
        self.assertEqual(totals.subtotal, Decimal("100.00"))
        self.assertEqual(totals.discount, Decimal("10.00"))
        self.assertEqual(totals.total, Decimal("90.00"))
        self.assertEqual(totals.total_afn, Decimal("6300"))

    def test_exact_tender_is_paid(self):
        settlement = settle(self.totals(), Decimal("6300"), Decimal("70"))
        self.assertEqual(settlement.status, InvoiceStatus.PAID)
        self.assertEqual(settlement.paid_amount, Decimal("90.00"))
        self.assertFalse(settlement.is_credit_sale)

    def test_short_tender_leaves_outstanding(self):
        settlement = settle(self.totals(), Decimal("3000"), Decimal("70"))
        self.assertEqual(settlement.status, InvoiceStatus.PARTIAL)
        self.assertEqual(settlement.paid_amount, Decimal("42.86"))
        self.assertEqual(settlement.outstanding_amount, Decimal("47.14"))
        self.assertEqual(settlement.outstanding_amount_afn, Decimal("3300"))
        self.assertEqual(settlement.paid_amount + settlement.outstanding_amount, Decimal("90.00"))
        self.assertTrue(settlement.is_credit_sale)

    def test_nothing_tendered_is_unpaid(self):
        settlement = settle(self.totals(), Decimal("0"), Decimal("70"))
        self.assertEqual(settlement.status, InvoiceStatus.UNPAID)
        self.assertEqual(settlement.outstanding_amount, Decimal("90.00"))

    def test_over_tender_returns_change(self):
        settlement = settle(self.totals(), Decimal("7000"), Decimal("70"))
        self.assertEqual(settlement.change_afn, Decimal("700"))
        self.assertEqual(settlement.credit_afn, Decimal("0"))
        self.assertEqual(settlement.paid_amount_afn, Decimal("6300"))

    def test_over_tender_kept_as_credit(self):
        settlement = settle(self.totals(), Decimal("7000"), Decimal("70"), return_change=False)
        self.assertEqual(settlement.change_afn, Decimal("0"))
        self.assertEqual(settlement.credit_afn, Decimal("700"))
        self.assertEqual(settlement.credit_amount, Decimal("10.00"))
        self.assertEqual(settlement.cash_received_afn, Decimal("7000"))

    def test_dust_is_forgiven(self):
        settlement = settle(self.totals(), Decimal("6297"), Decimal("70"))
        self.assertEqual(settlement.status, InvoiceStatus.PAID)
        self.assertEqual(settlement.outstanding_amount, Decimal("0"))
        self.assertEqual(settlement.paid_amount, Decimal("90.00"))

    def test_fixed_afn_price_wins_over_conversion(self):
        line = price_line(make_product(sale_price="1.00", sale_price_afn="75.00"), 2, Decimal("70"))
        self.assertEqual(line.unit_price_afn, Decimal("75.00"))
        self.assertEqual(line.unit_price, Decimal("1.0714"))
        totals = compute_totals([line], Decimal("0"), Decimal("70"))
        self.assertEqual(totals.total_afn, Decimal("150"))
        self.assertEqual(totals.total, Decimal("2.14"))

    def test_discount_out_of_range_is_rejected(self):
        line = price_line(make_product(), 1, Decimal("70"))
        with self.assertRaises(CheckoutError):
            compute_totals([line], Decimal("101"), Decimal("70"))

    def test_invalid_rate_and_quantity(self):
        with self.assertRaises(CheckoutError):
            price_line(make_product(), 1, Decimal("0"))
        with self.assertRaises(CheckoutError):
            price_line(make_product(), 0, Decimal("70"))

    def test_invoice_status_derivation(self):
        self.assertEqual(derive_invoice_status(Decimal("10"), Decimal("0")), InvoiceStatus.PAID)
        self.assertEqual(derive_invoice_status(Decimal("0"), Decimal("10")), InvoiceStatus.UNPAID)
        self.assertEqual(derive_invoice_status(Decimal("5"), Decimal("5")), InvoiceStatus.PARTIAL)


class SalesApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        set_exchange_rate(rate="70")

        self.product = Product.objects.create(
            sku="TEA-1", name="Tea", sale_price=Decimal("100.00"), cost_price=Decimal("60.00")
        )
        InventoryMovement.objects.create(
            product=self.product,
            movement_type=MovementType.INBOUND,
            quantity_delta=10,
            reference_type="seed",
            reference_id="seed-stock",
            created_by=self.admin,
        )
        self.customer = Customer.objects.create(display_id="AB12345", name="Ahmad")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def stock(self):
        return InventoryMovement.current_stock(self.product.id)

    def checkout(self, quantity=1, **overrides):
        payload = {
            "items": [{"product": str(self.product.id), "quantity": quantity}],
            "discount_percent": "0",
            "tendered_afn": "7000",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/sales/", payload, format="json")

    def credit_checkout(self, quantity=1, tendered="3000", **overrides):
        return self.checkout(
            quantity=quantity,
            customer=str(self.customer.id),
            tendered_afn=tendered,
            due_date=(timezone.now() + timedelta(days=7)).isoformat(),
            **overrides,
        )

    def test_cash_sale_with_change(self):
        self.auth_as("cashier", "cashier123")
        response = self.checkout(discount_percent="10")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["total"], "90.00")
        self.assertEqual(response.data["total_local"], "6300.00")
        self.assertEqual(response.data["status"], InvoiceStatus.PAID)
        self.assertEqual(response.data["change_afn"], "700.00")
        self.assertEqual(response.data["invoice_number"], f"INV-{timezone.now().year}-000001")
        self.assertIsNone(response.data["customer"])

        self.assertEqual(self.stock(), 9)
        self.assertEqual(current_balance(), Decimal("6300.00"))
        payment = Payment.objects.get(invoice_id=response.data["id"])
        self.assertEqual(payment.amount, Decimal("90.00"))
        self.assertEqual(payment.amount_afn, Decimal("6300.00"))
        self.assertTrue(AuditLog.objects.filter(action="sale.create", entity_id=response.data["id"]).exists())

    def test_invoice_numbers_are_sequential(self):
        self.auth_as("cashier", "cashier123")
        first = self.checkout()
        second = self.checkout()
        year = timezone.now().year
        self.assertEqual(first.data["invoice_number"], f"INV-{year}-000001")
        self.assertEqual(second.data["invoice_number"], f"INV-{year}-000002")

    def test_walk_in_credit_sale_is_rejected(self):
        self.auth_as("cashier", "cashier123")
        response = self.checkout(discount_percent="10", tendered_afn="3000")
        self.assertEqual(response.status_code, 400)
        self.assertIn("customer", response.data["fields"])
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(self.stock(), 10)

    def test_credit_sale_opens_debt_and_raises_customer_balance(self):
        self.auth_as("cashier", "cashier123")
        response = self.credit_checkout(discount_percent="10")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], InvoiceStatus.PARTIAL)
        self.assertEqual(Decimal(response.data["paid_amount"]) + Decimal(response.data["outstanding_amount"]), Decimal("90.00"))
        self.assertEqual(response.data["outstanding_amount"], "47.14")

        debt = DebtRecord.objects.get(invoice_id=response.data["id"])
        self.assertEqual(debt.remaining_amount_afn, Decimal("3300.00"))
        self.assertEqual(debt.status, DebtStatus.ACTIVE)
        self.assertEqual(response.data["debt"]["id"], str(debt.id))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("47.14"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("3300.00"))
        self.assertEqual(current_balance(), Decimal("3000.00"))

    def test_credit_sale_requires_future_due_date(self):
        self.auth_as("cashier", "cashier123")
        missing = self.checkout(customer=str(self.customer.id), tendered_afn="3000")
        self.assertEqual(missing.status_code, 400)
        self.assertIn("due_date", missing.data["fields"])

        past = self.checkout(
            customer=str(self.customer.id),
            tendered_afn="3000",
            due_date=(timezone.now() - timedelta(days=1)).isoformat(),
        )
        self.assertEqual(past.status_code, 400)
        self.assertIn("due_date", past.data["fields"])

    def test_insufficient_stock_is_rejected(self):
        self.auth_as("cashier", "cashier123")
        response = self.checkout(quantity=11, tendered_afn="77000")
        self.assertEqual(response.status_code, 400)
        self.assertIn("Insufficient stock for product Tea", str(response.data["fields"]["items"]))

    def test_empty_cart_duplicate_and_archived_products_are_rejected(self):
        self.auth_as("cashier", "cashier123")
        empty = self.client.post("/api/v1/sales/", {"items": [], "tendered_afn": "0"}, format="json")
        self.assertEqual(empty.status_code, 400)

        line = {"product": str(self.product.id), "quantity": 1}
        duplicate = self.client.post("/api/v1/sales/", {"items": [line, line], "tendered_afn": "14000"}, format="json")
        self.assertEqual(duplicate.status_code, 400)

        self.product.is_active = False
        self.product.save(update_fields=["is_active"])
        archived = self.checkout()
        self.assertEqual(archived.status_code, 400)

    def test_keeping_change_as_credit_lowers_customer_balance(self):
        self.auth_as("cashier", "cashier123")
        response = self.checkout(discount_percent="10", customer=str(self.customer.id), return_change=False)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["credit_afn"], "700.00")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("-10.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("-700.00"))
        self.assertEqual(current_balance(), Decimal("7000.00"))

    def test_keeping_change_requires_customer(self):
        self.auth_as("cashier", "cashier123")
        response = self.checkout(discount_percent="10", return_change=False)
        self.assertEqual(response.status_code, 400)
        self.assertIn("customer", response.data["fields"])

    def test_return_on_paid_sale_refunds_cash(self):
        self.auth_as("admin", "admin123")
        sale = self.checkout(quantity=2, tendered_afn="14000").data
        line_id = sale["lines"][0]["id"]

        response = self.client.post(
            f"/api/v1/sales/{sale['id']}/return/",
            {"items": [{"item": line_id, "quantity": 1}], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["return"]["cash_refund_afn"], "7000.00")

        invoice = Invoice.objects.get(pk=sale["id"])
        self.assertEqual(invoice.returned_amount, Decimal("100.00"))
        self.assertEqual(invoice.paid_amount, Decimal("100.00"))
        self.assertEqual(invoice.paid_amount + invoice.outstanding_amount + invoice.returned_amount, invoice.total)
        self.assertEqual(self.stock(), 9)
        self.assertEqual(current_balance(), Decimal("7000.00"))
        self.assertTrue(Payment.objects.filter(invoice=invoice, reference="RETURN REFUND", amount=Decimal("-100.00")).exists())
        self.assertTrue(AuditLog.objects.filter(action="sale.return", entity_id=str(invoice.id)).exists())

    def test_return_on_credit_sale_reduces_debt_first(self):
        self.auth_as("admin", "admin123")
        sale = self.credit_checkout(quantity=2, tendered="7000").data
        self.assertEqual(sale["outstanding_amount"], "100.00")

        response = self.client.post(
            f"/api/v1/sales/{sale['id']}/return/",
            {"items": [{"item": sale["lines"][0]["id"], "quantity": 1}], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["return"]["cash_refund_afn"], "0.00")
        self.assertEqual(response.data["invoice"]["status"], InvoiceStatus.PAID)

        debt = DebtRecord.objects.get(invoice_id=sale["id"])
        self.assertEqual(debt.remaining_amount_afn, Decimal("0.00"))
        self.assertEqual(debt.status, DebtStatus.SETTLED)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))
        self.assertEqual(current_balance(), Decimal("7000.00"))

    def test_return_after_debt_was_written_off_does_not_credit_customer(self):
        self.auth_as("admin", "admin123")
        sale = self.credit_checkout(quantity=2, tendered="7000").data
        debt = DebtRecord.objects.get(invoice_id=sale["id"])

        deleted = self.client.delete(f"/api/v1/debts/{debt.id}/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(deleted.status_code, 204)
        invoice = Invoice.objects.get(pk=sale["id"])
        self.assertEqual(invoice.outstanding_amount, Decimal("0.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PAID)

        response = self.client.post(
            f"/api/v1/sales/{sale['id']}/return/",
            {"items": [{"item": sale["lines"][0]["id"], "quantity": 1}], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["return"]["applied_to_balance_afn"], "0.00")
        self.assertEqual(response.data["return"]["cash_refund_afn"], "7000.00")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))

    def test_return_cannot_exceed_returnable_quantity(self):
        self.auth_as("admin", "admin123")
        sale = self.checkout(quantity=1).data
        url = f"/api/v1/sales/{sale['id']}/return/"
        item = {"item": sale["lines"][0]["id"], "quantity": 1}

        first = self.client.post(url, {"items": [item], "admin_password": "admin123"}, format="json")
        self.assertEqual(first.status_code, 201)
        second = self.client.post(url, {"items": [item], "admin_password": "admin123"}, format="json")
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.data["code"], "business_rule")
        self.assertEqual(self.stock(), 10)

    def test_return_with_wrong_admin_key_is_refused(self):
        self.auth_as("manager", "manager123")
        sale = self.checkout().data
        response = self.client.post(
            f"/api/v1/sales/{sale['id']}/return/",
            {"items": [{"item": sale["lines"][0]["id"], "quantity": 1}], "admin_password": "manager123"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["detail"], "Invalid Admin Key. Return unauthorized.")

    def test_manager_can_return_with_an_admin_password(self):
        self.auth_as("manager", "manager123")
        sale = self.checkout().data
        response = self.client.post(
            f"/api/v1/sales/{sale['id']}/return/",
            {"items": [{"item": sale["lines"][0]["id"], "quantity": 1}], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)

    def test_delete_sale_restores_stock_and_customer_balance(self):
        self.auth_as("admin", "admin123")
        sale = self.credit_checkout(quantity=2, tendered="7000").data
        self.assertEqual(self.stock(), 8)

        response = self.client.delete(f"/api/v1/sales/{sale['id']}/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.stock(), 10)
        self.assertFalse(Invoice.objects.filter(pk=sale["id"]).exists())
        self.assertFalse(DebtRecord.objects.exists())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))
        self.assertTrue(AuditLog.objects.filter(action="sale.delete", entity_id=sale["id"]).exists())

    def test_cashier_cannot_delete_sales(self):
        self.auth_as("cashier", "cashier123")
        sale = self.checkout().data
        response = self.client.delete(f"/api/v1/sales/{sale['id']}/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_bulk_delete_skips_unknown_ids(self):
        self.auth_as("admin", "admin123")
        first = self.checkout().data
        second = self.checkout().data
        response = self.client.post(
            "/api/v1/sales/bulk-delete/",
            {"ids": [first["id"], second["id"], str(uuid.uuid4())], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["deleted"], 2)
        self.assertEqual(self.stock(), 10)

    def test_delete_all_is_admin_only_and_zeroes_balances(self):
        self.auth_as("admin", "admin123")
        self.credit_checkout()
        self.checkout()

        self.auth_as("manager", "manager123")
        refused = self.client.post("/api/v1/sales/delete-all/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(refused.status_code, 403)

        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/sales/delete-all/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["deleted"], 2)
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(DebtRecord.objects.count(), 0)
        self.assertEqual(self.stock(), 10)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))
        self.assertEqual(self.customer.outstanding_balance_afn, Decimal("0.00"))

    def test_list_filters_and_detail(self):
        self.auth_as("cashier", "cashier123")
        credit = self.credit_checkout().data
        self.checkout()

        partial = self.client.get("/api/v1/sales/", {"status": "partial"})
        self.assertEqual(partial.status_code, 200)
        self.assertEqual(partial.data["count"], 1)
        self.assertEqual(partial.data["results"][0]["customer_name"], "Ahmad")

        by_name = self.client.get("/api/v1/sales/", {"q": "ahmad"})
        self.assertEqual(by_name.data["count"], 1)

        detail = self.client.get(f"/api/v1/sales/{credit['id']}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["lines"][0]["unit_cost"], "60.00")
        self.assertEqual(detail.data["net_total"], "100.00")
        self.assertEqual(len(detail.data["payments"]), 1)
