from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.inventory.models import InventoryMovement, MovementType

User = get_user_model()


class CatalogAuditTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")

    def auth_as_admin(self):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": "admin", "password": "admin123"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_product_create_update_delete_are_audited(self):
        self.auth_as_admin()
        created = self.client.post(
            "/api/v1/products/",
            {"sku": "tea-001", "name": "Green Tea 500g", "sale_price": "4.50", "cost_price": "3.00"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        product_id = created.data["id"]
        self.assertEqual(created.data["sku"], "TEA-001")
        self.assertEqual(created.data["cost_price"], "3.00")
        self.assertEqual(created.data["stock"], 0)

        updated = self.client.patch(
            f"/api/v1/products/{product_id}/",
            {"sale_price": "5.00", "sale_price_afn": "350.00"},
            format="json",
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["sale_price_afn"], "350.00")

        deleted = self.client.delete(f"/api/v1/products/{product_id}/")
        self.assertEqual(deleted.status_code, 204)

        self.assertTrue(AuditLog.objects.filter(action="catalog.product.create", entity_id=product_id).exists())
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.update", entity_id=product_id).exists())
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.delete", entity_id=product_id).exists())

    def test_opening_stock_creates_inbound_movement(self):
        self.auth_as_admin()
        created = self.client.post(
            "/api/v1/products/",
            {"sku": "RICE-5", "name": "Rice 5kg", "sale_price": "9.00", "stock": 12},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["stock"], 12)

        movement = InventoryMovement.objects.get(product_id=created.data["id"])
        self.assertEqual(movement.movement_type, MovementType.INBOUND)
        self.assertEqual(movement.quantity_delta, 12)
        self.assertEqual(movement.note, "Opening stock")

    def test_product_stock_adjustment_requires_reason_and_creates_inventory_movement(self):
        self.auth_as_admin()
        product = Product.objects.create(sku="OIL-1", name="Cooking Oil 1L", sale_price=Decimal("2.50"))

        missing_reason = self.client.patch(
            f"/api/v1/products/{product.id}/",
            {"stock": 5},
            format="json",
        )
        self.assertEqual(missing_reason.status_code, 400)
        self.assertIn("stock_adjust_reason", missing_reason.data["fields"])
        self.assertEqual(InventoryMovement.objects.filter(product=product).count(), 0)

        adjusted = self.client.patch(
            f"/api/v1/products/{product.id}/",
            {"stock": 5, "stock_adjust_reason": "Initial count"},
            format="json",
        )
        self.assertEqual(adjusted.status_code, 200)
        self.assertEqual(adjusted.data["stock"], 5)

        movement = InventoryMovement.objects.get(product=product)
        self.assertEqual(movement.movement_type, MovementType.ADJUSTMENT)
        self.assertEqual(movement.quantity_delta, 5)
        self.assertEqual(movement.note, "Initial count")

    def test_product_with_stock_history_cannot_be_deleted(self):
        self.auth_as_admin()
        product = Product.objects.create(sku="SUG-1", name="Sugar 1kg", sale_price=Decimal("1.20"))
        InventoryMovement.objects.create(
            product=product,
            movement_type=MovementType.INBOUND,
            quantity_delta=3,
            reference_type="test",
            reference_id="seed",
        )

        response = self.client.delete(f"/api/v1/products/{product.id}/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "product_in_use")
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())

    def test_toggle_status_archives_and_restores(self):
        self.auth_as_admin()
        product = Product.objects.create(sku="SOAP-1", name="Soap", sale_price=Decimal("0.80"))

        archived = self.client.post(f"/api/v1/products/{product.id}/toggle-status/")
        self.assertEqual(archived.status_code, 200)
        self.assertFalse(archived.data["is_active"])

        restored = self.client.post(f"/api/v1/products/{product.id}/toggle-status/")
        self.assertTrue(restored.data["is_active"])
        self.assertEqual(AuditLog.objects.filter(action="catalog.product.toggle_status").count(), 2)

    def test_bulk_delete_skips_products_with_history(self):
        self.auth_as_admin()
        unused = Product.objects.create(sku="NEW-1", name="Never Stocked", sale_price=Decimal("1.00"))
        stocked = Product.objects.create(sku="STK-1", name="Stocked", sale_price=Decimal("1.00"))
        InventoryMovement.objects.create(
            product=stocked,
            movement_type=MovementType.INBOUND,
            quantity_delta=2,
            reference_type="test",
            reference_id="seed",
        )
        url = "/api/v1/products/bulk-delete/"
        payload = {"ids": [str(unused.id), str(stocked.id)]}

        wrong_key = self.client.post(url, {**payload, "admin_password": "wrong"}, format="json")
        self.assertEqual(wrong_key.status_code, 403)
        self.assertEqual(wrong_key.data["code"], "invalid_admin_key")

        response = self.client.post(url, {**payload, "admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["deleted"], 1)
        self.assertEqual(response.data["skipped_ids"], [str(stocked.id)])
        self.assertFalse(Product.objects.filter(pk=unused.pk).exists())
        self.assertTrue(Product.objects.filter(pk=stocked.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.bulk_delete").exists())

    def test_bulk_delete_is_admin_only(self):
        User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        product = Product.objects.create(sku="MGR-1", name="Manager Test", sale_price=Decimal("1.00"))
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": "manager", "password": "manager123"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.post(
            "/api/v1/products/bulk-delete/",
            {"ids": [str(product.id)], "admin_password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())


class ProductListFiltersTests(APITestCase):
    def setUp(self):
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        self.tea = Product.objects.create(sku="TEA-1", name="Black Tea", category="Drinks", sale_price=Decimal("3.00"))
        self.flour = Product.objects.create(
            sku="FLR-1", name="Flour 10kg", category="Staples", sale_price=Decimal("8.00"), reorder_level=10
        )
        self.old = Product.objects.create(sku="OLD-1", name="Old Tea", category="Drinks", sale_price=Decimal("1.00"), is_active=False)
        for product, qty in ((self.tea, 50), (self.flour, 4)):
            InventoryMovement.objects.create(
                product=product,
                movement_type=MovementType.INBOUND,
                quantity_delta=qty,
                reference_type="test",
                reference_id="seed",
            )
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": "cashier", "password": "cashier123"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_search_matches_name_and_sku(self):
        response = self.client.get("/api/v1/products/", {"q": "tea"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual({row["sku"] for row in response.data["results"]}, {"TEA-1", "OLD-1"})

    def test_status_and_category_filters(self):
        response = self.client.get("/api/v1/products/", {"status": "active", "category": "drinks"})
        self.assertEqual([row["sku"] for row in response.data["results"]], ["TEA-1"])

        archived = self.client.get("/api/v1/products/", {"status": "archived"})
        self.assertEqual([row["sku"] for row in archived.data["results"]], ["OLD-1"])

    def test_low_stock_filter_uses_reorder_level(self):
        response = self.client.get("/api/v1/products/", {"low_stock": "true", "status": "active"})
        self.assertEqual([row["sku"] for row in response.data["results"]], ["FLR-1"])
        self.assertTrue(response.data["results"][0]["is_low_stock"])

    @override_settings(POS_LOW_STOCK_THRESHOLD=3)
    def test_shop_threshold_only_applies_without_reorder_level(self):
        spice = Product.objects.create(sku="SPC-1", name="Saffron", sale_price=Decimal("12.00"), reorder_level=1)
        salt = Product.objects.create(sku="SLT-1", name="Salt", sale_price=Decimal("0.50"))
        for product, qty in ((spice, 3), (salt, 1)):
            InventoryMovement.objects.create(
                product=product,
                movement_type=MovementType.INBOUND,
                quantity_delta=qty,
                reference_type="test",
                reference_id="seed",
            )

        response = self.client.get("/api/v1/products/", {"low_stock": "true", "status": "active"})
        self.assertEqual({row["sku"] for row in response.data["results"]}, {"FLR-1", "SLT-1"})

        detail = self.client.get(f"/api/v1/products/{spice.id}/")
        self.assertFalse(detail.data["is_low_stock"])
        detail = self.client.get(f"/api/v1/products/{salt.id}/")
        self.assertTrue(detail.data["is_low_stock"])

        inventory = self.client.get("/api/v1/inventory/low-stock/")
        self.assertEqual({row["sku"] for row in inventory.data}, {"FLR-1", "SLT-1"})

    def test_cashier_cannot_create_products(self):
        response = self.client.post(
            "/api/v1/products/",
            {"sku": "X-1", "name": "X", "sale_price": "1.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
