from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.accounts.services import (
    consume_ws_ticket, dashboard_path_for, issue_ws_ticket, login_path_for,
)


class RoleRedirectTests(TestCase):
    """Post-login landing page per role."""

    def test_merchant_goes_to_store_dashboard(self):
        user = User.objects.create_user("shop@example.com", "x", role=Role.MERCHANT)
        self.assertEqual(dashboard_path_for(user), "/store/dashboard")

    def test_customer_goes_to_customer_dashboard(self):
        user = User.objects.create_user("buyer@example.com", "x", role=Role.CUSTOMER)
        self.assertEqual(dashboard_path_for(user), "/customer/dashboard")

    def test_courier_goes_to_courier_dashboard(self):
        user = User.objects.create_user("rider@example.com", "x", role=Role.COURIER)
        self.assertEqual(dashboard_path_for(user), "/courier/dashboard")

    def test_guest_goes_to_customer_login(self):
        self.assertEqual(dashboard_path_for(None), "/customer/login")
        self.assertEqual(dashboard_path_for(AnonymousUser()), "/customer/login")

    def test_unknown_role_goes_to_customer_login(self):
        user = User.objects.create_user("odd@example.com", "x")
        user.role = "ADMIN"
        self.assertEqual(dashboard_path_for(user), "/customer/login")

    def test_login_paths(self):
        self.assertEqual(login_path_for(Role.MERCHANT), "/store/login")
        self.assertEqual(login_path_for(Role.COURIER), "/courier/login")
        self.assertEqual(login_path_for(None), "/customer/login")

    def test_redirect_endpoint_for_guest_and_user(self):
        client = APIClient()
        response = client.get("/api/v1/accounts/redirect/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"role": None, "redirect_to": "/customer/login"})

        user = User.objects.create_user("shop2@example.com", "x", role=Role.MERCHANT)
        client.force_authenticate(user)
        response = client.get("/api/v1/accounts/redirect/")
        self.assertEqual(response.data["role"], Role.MERCHANT)
        self.assertEqual(response.data["redirect_to"], "/store/dashboard")


class RegistrationTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.payload = {
            "email": "nuevo@example.com",
            "password": "Tienda-Segura-2024",
            "full_name": "Nuevo Cliente",
            "phone": "3001234567",
            "role": Role.COURIER,
        }

    def test_register_creates_user_with_role(self):
        response = self.client.post("/api/v1/accounts/register/", self.payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["dashboard_path"], "/courier/dashboard")

        user = User.objects.get(email="nuevo@example.com")
        self.assertEqual(user.role, Role.COURIER)
        self.assertTrue(user.check_password(self.payload["password"]))

    def test_register_rejects_bad_phone(self):
        self.payload["phone"] = "12345"
        response = self.client.post("/api/v1/accounts/register/", self.payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("phone", response.data)
        self.assertFalse(User.objects.filter(email="nuevo@example.com").exists())

    def test_login_returns_tokens_and_me_works(self):
        User.objects.create_user("login@example.com", "Tienda-Segura-2024", role=Role.CUSTOMER)
        response = self.client.post(
            "/api/v1/accounts/token/",
            {"email": "login@example.com", "password": "Tienda-Segura-2024"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = self.client.get("/api/v1/accounts/me/")
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["email"], "login@example.com")


class WebSocketTicketTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user("ws@example.com", "x", role=Role.CUSTOMER)

    def test_ticket_is_single_use(self):
        ticket = issue_ws_ticket(self.user)
        self.assertEqual(consume_ws_ticket(ticket), str(self.user.pk))
        self.assertIsNone(consume_ws_ticket(ticket))

    def test_missing_ticket(self):
        self.assertIsNone(consume_ws_ticket(""))
        self.assertIsNone(consume_ws_ticket("never-issued"))

    @patch("apps.accounts.views.issue_ws_ticket", return_value="fixed-ticket")
    def test_ticket_endpoint_requires_auth(self, mock_issue):
        client = APIClient()
        response = client.post("/api/v1/accounts/ws-ticket/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        mock_issue.assert_not_called()

        client.force_authenticate(self.user)
        response = client.post("/api/v1/accounts/ws-ticket/")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data, {"ticket": "fixed-ticket"})
