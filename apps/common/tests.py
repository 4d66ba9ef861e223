from decimal import Decimal

from django.test import SimpleTestCase, override_settings
from rest_framework.test import APITestCase

from apps.common.money import afn_to_usd, default_exchange_rate, is_settled, round_afn, round_usd, usd_to_afn
from config import settings as project_settings


class MoneyRoundingTests(SimpleTestCase):
    def test_usd_rounds_half_up_to_cents(self):
        self.assertEqual(round_usd("1.005"), Decimal("1.01"))
        self.assertEqual(round_usd(Decimal("2.344")), Decimal("2.34"))

    def test_afn_rounds_half_up_to_whole_afghani(self):
        self.assertEqual(round_afn("6299.5"), Decimal("6300"))
        self.assertEqual(round_afn("6299.49"), Decimal("6299"))

    def test_conversions(self):
        self.assertEqual(usd_to_afn("90.00", "70"), Decimal("6300.00"))
        self.assertEqual(afn_to_usd("3000", "70"), Decimal("42.86"))

    def test_afn_to_usd_rejects_non_positive_rate(self):
        with self.assertRaises(ValueError):
            afn_to_usd("100", "0")

    def test_settlement_tolerance(self):
        self.assertTrue(is_settled("0.05"))
        self.assertFalse(is_settled("0.06"))

    @override_settings(POS_DEFAULT_EXCHANGE_RATE="71.5")
    def test_default_exchange_rate_comes_from_settings(self):
        self.assertEqual(default_exchange_rate(), Decimal("71.5000"))


class HealthCheckTests(APITestCase):
    def test_health_needs_no_auth(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "ok"})

    def test_api_errors_use_envelope(self):
        response = self.client.get("/api/v1/products/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(set(response.data), {"code", "detail", "fields"})


class SettingsDefaultsTests(SimpleTestCase):
    def test_debug_is_off_unless_the_environment_turns_it_on(self):
        self.assertEqual(project_settings.env.scheme["DJANGO_DEBUG"], (bool, False))
