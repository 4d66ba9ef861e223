from decimal import Decimal
from io import StringIO
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.test import override_settings
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.shop.models import SettingKey, SystemSetting
from apps.shop.services import get_exchange_rate

User = get_user_model()


def rates_response(payload):
    response = mock.Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = payload
    return response


@override_settings(POS_DEFAULT_EXCHANGE_RATE="70", POS_LIVE_RATE_MARGIN="1")
class ExchangeRateTests(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_default_rate_until_one_is_stored(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.get("/api/v1/settings/exchange-rate/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["rate"], Decimal("70"))

    def test_manager_sets_rate_and_it_is_audited(self):
        self.auth_as("manager", "manager123")
        response = self.client.post("/api/v1/settings/exchange-rate/", {"rate": "72.25"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(get_exchange_rate(), Decimal("72.2500"))

        log = AuditLog.objects.get(action="settings.exchange_rate.update")
        self.assertEqual(log.details["previous"], "70.0000")
        self.assertEqual(log.details["rate"], "72.2500")

    def test_cashier_cannot_set_rate(self):
        self.auth_as("cashier", "cashier123")
        response = self.client.post("/api/v1/settings/exchange-rate/", {"rate": "72"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_non_positive_rate_is_rejected(self):
        self.auth_as("manager", "manager123")
        response = self.client.post("/api/v1/settings/exchange-rate/", {"rate": "0"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("rate", response.data["fields"])

    def test_garbage_stored_rate_falls_back_to_default(self):
        SystemSetting.objects.create(key=SettingKey.EXCHANGE_RATE, value="abc")
        self.assertEqual(get_exchange_rate(), Decimal("70.0000"))

    @mock.patch("apps.shop.services.requests.get")
    def test_fetch_live_rate_adds_margin_without_saving(self, mocked_get):
        mocked_get.return_value = rates_response({"result": "success", "rates": {"AFN": 70.5, "EUR": 0.9}})
        self.auth_as("manager", "manager123")

        response = self.client.post("/api/v1/settings/fetch-live-rate/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["market_rate"], Decimal("70.5"))
        self.assertEqual(response.data["rate"], Decimal("71.5"))
        self.assertFalse(SystemSetting.objects.exists())

    @mock.patch("apps.shop.services.requests.get", side_effect=requests.ConnectionError("down"))
    def test_fetch_live_rate_reports_outage(self, mocked_get):
        self.auth_as("manager", "manager123")
        response = self.client.post("/api/v1/settings/fetch-live-rate/")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "live_rate_unavailable")

    @mock.patch("apps.shop.services.requests.get")
    def test_fetch_live_rate_without_afn(self, mocked_get):
        mocked_get.return_value = rates_response({"rates": {"EUR": 0.9}})
        self.auth_as("manager", "manager123")
        response = self.client.post("/api/v1/settings/fetch-live-rate/")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["detail"], "Could not retrieve AFN rate.")

    @mock.patch("apps.shop.services.requests.get")
    def test_update_exchange_rate_command_stores_adjusted_rate(self, mocked_get):
        mocked_get.return_value = rates_response({"rates": {"AFN": "69.25"}})
        out = StringIO()
        call_command("update_exchange_rate", stdout=out)
        self.assertEqual(get_exchange_rate(), Decimal("70.2500"))
        self.assertIn("stored 70.2500", out.getvalue())
        self.assertEqual(AuditLog.objects.get().details["source"], "live")

    @mock.patch("apps.shop.services.requests.get", side_effect=requests.Timeout("slow"))
    def test_update_exchange_rate_command_fails_loudly(self, mocked_get):
        with self.assertRaises(CommandError):
            call_command("update_exchange_rate", stdout=StringIO())
        self.assertFalse(SystemSetting.objects.exists())
