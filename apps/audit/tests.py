import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.audit.services import record_audit

User = get_user_model()


class AuditLogTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_can_list_and_filter(self):
        record_audit(actor=self.admin, action="sale.create", entity_type="invoice", entity_id="inv-1")
        record_audit(actor=self.manager, action="expenses.create", entity_type="expense", entity_id="exp-1")
        self.auth_as("admin", "admin123")

        response = self.client.get("/api/v1/audit-logs/", {"action": "sale.create"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["entity_id"], "inv-1")

    def test_manager_cannot_read_audit_trail(self):
        self.auth_as("manager", "manager123")
        response = self.client.get("/api/v1/audit-logs/")
        self.assertEqual(response.status_code, 403)

    def test_details_are_stored_as_json_safe_values(self):
        ref = uuid.uuid4()
        entry = record_audit(
            actor=None,
            action="debt.payment",
            entity_type="debt",
            entity_id=ref,
            details={"amount": Decimal("12.50"), "items": [ref], "ok": True},
        )
        entry.refresh_from_db()
        self.assertEqual(entry.entity_id, str(ref))
        self.assertEqual(entry.details, {"amount": "12.50", "items": [str(ref)], "ok": True})
        self.assertIsNone(entry.actor)

    def test_entries_are_append_only(self):
        entry = record_audit(actor=self.admin, action="x", entity_type="y", entity_id="1")
        entry.action = "changed"
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()
        self.assertEqual(AuditLog.objects.get(pk=entry.pk).action, "x")
