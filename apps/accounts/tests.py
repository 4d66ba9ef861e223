from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.accounts.models import UserRole
from apps.audit.models import AuditLog

User = get_user_model()


class AuthApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        return response

    def test_token_pair_and_refresh(self):
        tokens = self.auth_as("cashier", "cashier123")
        self.assertIn("refresh", tokens.data)
        refreshed = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens.data["refresh"]}, format="json")
        self.assertEqual(refreshed.status_code, 200)
        self.assertIn("access", refreshed.data)

    def test_bad_credentials_are_rejected(self):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": "cashier", "password": "nope"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)

    def test_me_returns_role(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["username"], "cashier")
        self.assertEqual(response.data["role"], UserRole.CASHIER)

    def test_admin_confirms_with_own_password(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["valid"])

    def test_cashier_needs_an_admin_password(self):
        self.auth_as("cashier", "cashier123")
        own = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "cashier123"}, format="json")
        self.assertEqual(own.status_code, 403)
        self.assertEqual(own.data["code"], "invalid_admin_key")
        self.assertEqual(own.data["detail"], "Invalid Admin Key. Operation unauthorized.")

        admin = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(admin.status_code, 200)

    def test_inactive_admin_password_is_not_accepted(self):
        self.admin.is_active = False
        self.admin.save(update_fields=["is_active"])
        self.auth_as("cashier", "cashier123")
        response = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_admin_key_follows_group_membership(self):
        call_command("seed_roles", stdout=StringIO())
        owner = User.objects.create_user(username="owner", password="owner123", role="CASHIER")
        owner.groups.add(Group.objects.get(name=UserRole.ADMIN))
        self.admin.groups.add(Group.objects.get(name=UserRole.CASHIER))
        self.auth_as("cashier", "cashier123")

        by_group = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "owner123"}, format="json")
        self.assertEqual(by_group.status_code, 200)
        self.assertTrue(by_group.data["valid"])

        demoted = self.client.post("/api/v1/auth/verify-admin-key/", {"admin_password": "admin123"}, format="json")
        self.assertEqual(demoted.status_code, 403)

    def test_group_membership_overrides_role_field(self):
        call_command("seed_roles", stdout=StringIO())
        self.cashier.groups.add(Group.objects.get(name=UserRole.MANAGER))
        self.auth_as("cashier", "cashier123")
        response = self.client.post(
            "/api/v1/products/",
            {"sku": "GRP-1", "name": "Group Test", "sale_price": "1.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)


class SeedRolesCommandTests(APITestCase):
    def test_creates_one_group_per_role(self):
        out = StringIO()
        call_command("seed_roles", stdout=out)
        self.assertEqual(set(Group.objects.values_list("name", flat=True)), set(UserRole.values))

        call_command("seed_roles", stdout=out)
        self.assertEqual(Group.objects.count(), len(UserRole.values))
        self.assertIn("exists", out.getvalue())

    def test_sync_users_moves_users_into_their_role_group(self):
        call_command("seed_roles", stdout=StringIO())
        cashier = User.objects.create_user(username="cashier", password="cashier123", role=UserRole.CASHIER)
        cashier.groups.add(Group.objects.get(name=UserRole.ADMIN))

        out = StringIO()
        call_command("seed_roles", "--sync-users", stdout=out)
        self.assertEqual(list(cashier.groups.values_list("name", flat=True)), [UserRole.CASHIER])
        self.assertIn("Users synced: 1", out.getvalue())


class UserManagementTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(
            username="manager", password="manager123", role="MANAGER", email="manager@shop.af"
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_creates_user_who_can_sign_in(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/users/",
            {"username": "farid", "password": "Kabul-Till-2026", "role": "CASHIER", "first_name": "Farid"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertNotIn("password", response.data)
        self.assertEqual(response.data["role"], UserRole.CASHIER)
        self.assertTrue(AuditLog.objects.filter(action="user.create", entity_id=str(response.data["id"])).exists())

        self.client.credentials()
        self.auth_as("farid", "Kabul-Till-2026")

    def test_weak_password_and_taken_email_are_rejected(self):
        self.auth_as("admin", "admin123")
        weak = self.client.post(
            "/api/v1/users/",
            {"username": "farid", "password": "12345", "role": "CASHIER"},
            format="json",
        )
        self.assertEqual(weak.status_code, 400)
        self.assertIn("password", weak.data["fields"])

        taken = self.client.post(
            "/api/v1/users/",
            {"username": "farid", "password": "Kabul-Till-2026", "role": "CASHIER", "email": "MANAGER@shop.af"},
            format="json",
        )
        self.assertEqual(taken.status_code, 400)
        self.assertIn("email", taken.data["fields"])
        self.assertFalse(User.objects.filter(username="farid").exists())

    def test_only_admins_manage_users(self):
        self.auth_as("manager", "manager123")
        self.assertEqual(self.client.get("/api/v1/users/").status_code, 403)

    def test_role_change_moves_user_to_new_group(self):
        call_command("seed_roles", stdout=StringIO())
        self.manager.groups.add(Group.objects.get(name=UserRole.MANAGER))
        self.auth_as("admin", "admin123")

        response = self.client.patch(f"/api/v1/users/{self.manager.id}/", {"role": "ACCOUNTANT"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(self.manager.groups.values_list("name", flat=True)), [UserRole.ACCOUNTANT])
        self.assertTrue(AuditLog.objects.filter(action="user.update", entity_id=str(self.manager.id)).exists())

        with_password = self.client.patch(
            f"/api/v1/users/{self.manager.id}/", {"password": "Kabul-Till-2026"}, format="json"
        )
        self.assertEqual(with_password.status_code, 400)

    def test_admin_resets_password(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            f"/api/v1/users/{self.manager.id}/set-password/", {"password": "Herat-Branch-77"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.manager.refresh_from_db()
        self.assertTrue(self.manager.check_password("Herat-Branch-77"))
        self.assertTrue(AuditLog.objects.filter(action="user.password_reset").exists())

    def test_delete_user_but_not_yourself(self):
        self.auth_as("admin", "admin123")
        own = self.client.delete(f"/api/v1/users/{self.admin.id}/")
        self.assertEqual(own.status_code, 400)
        self.assertEqual(own.data["code"], "business_rule")

        other = self.client.delete(f"/api/v1/users/{self.manager.id}/")
        self.assertEqual(other.status_code, 204)
        self.assertFalse(User.objects.filter(pk=self.manager.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="user.delete", entity_id=str(self.manager.id)).exists())

    def test_update_own_profile(self):
        User.objects.create_user(username="other", password="other123", email="taken@shop.af")
        self.auth_as("manager", "manager123")
        response = self.client.patch("/api/v1/auth/me/", {"first_name": "Zahra", "role": "ADMIN"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["first_name"], "Zahra")
        self.assertEqual(response.data["role"], UserRole.MANAGER)

        taken = self.client.patch("/api/v1/auth/me/", {"email": "taken@shop.af"}, format="json")
        self.assertEqual(taken.status_code, 400)
        self.assertIn("email", taken.data["fields"])

    def test_change_own_password_needs_current_one(self):
        self.auth_as("manager", "manager123")
        wrong = self.client.post(
            "/api/v1/auth/me/password/",
            {"current_password": "nope", "password": "Herat-Branch-77"},
            format="json",
        )
        self.assertEqual(wrong.status_code, 400)
        self.assertIn("current_password", wrong.data["fields"])

        changed = self.client.post(
            "/api/v1/auth/me/password/",
            {"current_password": "manager123", "password": "Herat-Branch-77"},
            format="json",
        )
        self.assertEqual(changed.status_code, 200)
        self.manager.refresh_from_db()
        self.assertTrue(self.manager.check_password("Herat-Branch-77"))
        self.assertTrue(AuditLog.objects.filter(action="user.password_change").exists())
