from django.test import TestCase
from rest_framework.test import APIClient

from .models import User


class UserModelTests(TestCase):
    def test_alert_access_by_role_or_scope(self):
        admin = User.objects.create_user(email="admin@stock.test", password="Pass123!", role=User.Role.ADMIN)
        reader = User.objects.create_user(email="reader@stock.test", password="Pass123!", permissions=["alerts:read"])
        inv_admin = User.objects.create_user(
            email="invadmin@stock.test", password="Pass123!", permissions=["inventory:admin"]
        )
        staff = User.objects.create_user(email="staff@stock.test", password="Pass123!")
        manager = User.objects.create_user(
            email="manager@stock.test", password="Pass123!", role=User.Role.INVENTORY_MANAGER
        )

        self.assertTrue(admin.has_alert_access)
        self.assertTrue(reader.has_alert_access)
        self.assertTrue(inv_admin.has_alert_access)
        self.assertFalse(staff.has_alert_access)
        self.assertFalse(manager.has_alert_access)

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(email="root@stock.test", password="Pass123!")
        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertTrue(user.is_staff)


class AuthApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(email="admin@stock.test", password="Pass123!", role=User.Role.ADMIN)
        self.staff = User.objects.create_user(email="staff@stock.test", password="Pass123!")

    def test_login_returns_token_pair_usable_for_me(self):
        resp = self.client.post(
            "/auth/login/", {"email": "staff@stock.test", "password": "Pass123!"}, format="json"
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertIn("refresh", resp.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")
        me = self.client.get("/auth/me/")
        self.assertEqual(me.status_code, 200, me.data)
        self.assertEqual(me.data["email"], "staff@stock.test")
        self.assertFalse(me.data["hasAlertAccess"])

    def test_invalid_token_is_unauthorized(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer garbage")
        resp = self.client.get("/auth/me/")
        self.assertEqual(resp.status_code, 401, resp.data)
        self.assertEqual(
            resp.data,
            {"message": "Given token not valid for any token type", "code": "TOKEN_NOT_VALID"},
        )

    def test_only_admins_manage_users(self):
        self.client.force_authenticate(self.staff)
        denied = self.client.get("/auth/users/")
        self.assertEqual(denied.status_code, 403, denied.data)

        self.client.force_authenticate(self.admin)
        created = self.client.post(
            "/auth/users/",
            {"email": "ops@stock.test", "password": "Pass123!", "permissions": ["alerts:read"]},
            format="json",
        )
        self.assertEqual(created.status_code, 201, created.data)
        self.assertTrue(created.data["hasAlertAccess"])
        self.assertNotIn("password", created.data)
        self.assertTrue(User.objects.get(email="ops@stock.test").check_password("Pass123!"))

    def test_unknown_scope_is_rejected(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post(
            "/auth/users/",
            {"email": "ops@stock.test", "password": "Pass123!", "permissions": ["everything"]},
            format="json",
        )
        self.assertEqual(resp.status_code, 400, resp.data)
        self.assertIn("permissions", resp.data["errors"])

    def test_unchecked_scopes_are_rejected(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post(
            "/auth/users/",
            {"email": "writer@stock.test", "password": "Pass123!", "permissions": ["inventory:write"]},
            format="json",
        )
        self.assertEqual(resp.status_code, 400, resp.data)
        self.assertFalse(User.objects.filter(email="writer@stock.test").exists())
