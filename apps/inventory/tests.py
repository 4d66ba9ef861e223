from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import override_settings
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.inventory.models import InventoryMovement, MovementType

User = get_user_model()


class InventoryAuditTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cash123", role="CASHIER")
        self.product = Product.objects.create(sku="INV-001", name="Green Tea", sale_price=Decimal("4.00"))
        self.other_product = Product.objects.create(sku="INV-002", name="Rice 5kg", sale_price=Decimal("9.00"))

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_inventory_adjustment_create_is_audited(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/movements/",
            {
                "product": str(self.product.id),
                "movement_type": MovementType.ADJUSTMENT,
                "quantity_delta": 3,
                "note": "Found in back room",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["reference_type"], "manual")
        movement_id = response.data["id"]
        self.assertTrue(AuditLog.objects.filter(action="inventory.adjustment.create", entity_id=movement_id).exists())

    def test_adjustment_without_note_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/movements/",
            {"product": str(self.product.id), "movement_type": MovementType.ADJUSTMENT, "quantity_delta": 2},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("note", response.data["fields"])

    def test_sale_movements_cannot_be_recorded_by_hand(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/movements/",
            {"product": str(self.product.id), "movement_type": MovementType.SALE, "quantity_delta": -1},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("movement_type", response.data["fields"])

    def test_negative_adjustment_cannot_exceed_stock(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/movements/",
            {
                "product": str(self.product.id),
                "movement_type": MovementType.ADJUSTMENT,
                "quantity_delta": -1,
                "note": "Broken",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("quantity_delta", response.data["fields"])

    def test_inventory_movements_list_can_filter_by_product(self):
        self.auth_as("admin", "admin123")
        InventoryMovement.objects.create(
            product=self.product,
            movement_type=MovementType.INBOUND,
            quantity_delta=5,
            reference_type="test",
            reference_id="in-1",
        )
        InventoryMovement.objects.create(
            product=self.other_product,
            movement_type=MovementType.INBOUND,
            quantity_delta=2,
            reference_type="test",
            reference_id="in-2",
        )

        response = self.client.get("/api/v1/inventory/movements/", {"product": str(self.product.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["product_sku"], "INV-001")

    def test_stock_view_sums_movements(self):
        InventoryMovement.objects.create(
            product=self.product,
            movement_type=MovementType.INBOUND,
            quantity_delta=5,
            reference_type="test",
            reference_id="in-1",
        )
        InventoryMovement.objects.create(
            product=self.product,
            movement_type=MovementType.SALE,
            quantity_delta=-2,
            reference_type="test",
            reference_id="out-1",
        )
        self.auth_as("cashier", "cash123")
        response = self.client.get("/api/v1/inventory/stocks/", {"product": str(self.product.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["stock"], 3)

    def test_cashier_cannot_record_movements(self):
        self.auth_as("cashier", "cash123")
        response = self.client.post(
            "/api/v1/inventory/movements/",
            {"product": str(self.product.id), "movement_type": MovementType.INBOUND, "quantity_delta": 1},
            format="json",
        )
        self.assertEqual(response.status_code, 403)


class InventoryMovementModelTests(APITestCase):
    def test_model_refuses_to_go_below_zero(self):
        product = Product.objects.create(sku="M-1", name="Matches", sale_price=Decimal("0.10"))
        with self.assertRaises(ValidationError):
            InventoryMovement.objects.create(
                product=product,
                movement_type=MovementType.SALE,
                quantity_delta=-1,
                reference_type="test",
                reference_id="x",
            )


@override_settings(POS_LOW_STOCK_THRESHOLD=3)
class LowStockViewTests(APITestCase):
    def setUp(self):
        User.objects.create_user(username="cashier", password="cash123", role="CASHIER")
        self.flour = Product.objects.create(sku="FLR-1", name="Flour", sale_price=Decimal("8.00"), reorder_level=10)
        self.salt = Product.objects.create(sku="SLT-1", name="Salt", sale_price=Decimal("0.50"))
        self.sugar = Product.objects.create(sku="SUG-1", name="Sugar", sale_price=Decimal("1.20"))
        for product, qty in ((self.flour, 8), (self.salt, 2), (self.sugar, 20)):
            InventoryMovement.objects.create(
                product=product,
                movement_type=MovementType.INBOUND,
                quantity_delta=qty,
                reference_type="test",
                reference_id="seed",
            )
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": "cashier", "password": "cash123"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_uses_reorder_level_or_shop_threshold(self):
        response = self.client.get("/api/v1/inventory/low-stock/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["sku"] for row in response.data], ["SLT-1", "FLR-1"])
        self.assertEqual(response.data[0]["reorder_level"], 3)
        self.assertEqual(response.data[1]["reorder_level"], 10)
